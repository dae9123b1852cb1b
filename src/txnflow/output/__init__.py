"""Output layer: Rich renderers and JSON/quiet formatting of ServiceResult."""
