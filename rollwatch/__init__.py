"""Rollout convergence watcher (rollwatch).

Library and small service used while rolling out a clustered, stateful
workload on Kubernetes. It provides:
 - canonical parsing/formatting of CPU and memory quantities
 - a debounced poll loop that waits for a condition with a timeout
 - pod snapshot, readiness and phase-stability waits built on that loop

Issuing the rollout itself (create/update/delete of workload resources) is
left to the caller; rollwatch only decides when the platform has settled.
"""
