"""Топология сетки: таблицы смежности граней и вершин."""

from stl_milling.topology.adjacency import Edge, MeshAdjacency

__all__ = ["Edge", "MeshAdjacency"]
