# Credit Default Risk Report
"""
Data preparation and model comparison for the credit default risk reports.

Modules:
    - config: Pipeline configuration
    - errors: Pipeline error taxonomy
    - loader: CSV loading and schema validation
    - data_quality: Data quality validation functions
    - cleaning: Cleaning and call-center transformations
    - feature_selection: Correlation filter and one-hot expansion
    - models: Classifier families and their tuning grids
    - importance: Per-family feature importance
    - training: Split, cross-validated tuning and evaluation
    - pipeline: Stage orchestration for the report variants
"""

__version__ = "1.0.0"
