"""
Pipeline board core Python package.

This package holds the board engine: the partition of items into stages and
the pieces that move items between stages optimistically.
Modules:
- model.py: Item, Stage, Column, Board
- store.py: BoardStateStore and the pure move/revert helpers
- hittest.py: drop target geometry and the hit-testing resolver
- drag.py: DragSessionController state machine
- mutation.py: StageMutationService (optimistic move + reconcile + revert)
- sync_client.py: remote sync clients (HTTP and SQLite)
- db.py, loader.py, view.py, notifications.py: store backend and boundaries
- config.py, logging_config.py, errors.py, cli.py: environment, logging, exceptions, command line
"""
