"""
Timeline subsystem (the engine behind the Gantt view).

Components:
- task_models.py: Task / Dependency / Project records, parsing, patching, wire shape
- dependency_graph.py: links derived from each task's predecessor list
- timeline_state.py: the single mutable container of current tasks and links
- mutations.py: optimistic / confirmed writes against the task store
- analytics.py: at-risk detection, milestone horizon, progress rollups
- export.py: filters plus CSV / JSON exports
"""
