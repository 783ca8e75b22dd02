"""Core (UI-agnostic) data preparation for the aviation statistics deck.

This package contains:
- source loading (XLSX / CSV -> pandas)
- column selection, type coercion and row filters
- currency normalisation against an exchange-rate table
- left joins, aggregations and derived statistics
- slide pipelines (one prepared table per chart)
- chart hand-off (Altair -> Vega-Lite spec dict)
"""
