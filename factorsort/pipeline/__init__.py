"""End-to-end drivers; run ``python -m factorsort.pipeline.run_factor_pipeline``."""
