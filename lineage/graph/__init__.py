"""Lineage graph: schema, algorithms, store, persistence and merge.

Import from the submodules (``lineage.graph.store`` and so on); the package
itself re-exports nothing so that ``lineage.layout`` can depend on
``lineage.graph.schema`` without an import cycle.
"""
