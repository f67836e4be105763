"""Page state containers.

Each page owns its state and a pure update function. Pages never touch
storage: the dispatch loop (gui.model.AppModel) turns their request messages
into tasks and routes the results back.
"""
