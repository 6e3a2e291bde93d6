"""
Pipelines — Kubeflow Pipelines (KFP v2) components and pipeline definitions.

The bulk-import component is a self-contained Python function decorated
with ``@kfp.dsl.component`` so each import worker runs in its own container.
"""
