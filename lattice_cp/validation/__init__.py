"""Analytic checks of the cylindrical CP solver."""
