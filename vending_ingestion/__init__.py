"""
Spreadsheet ingestion for POS sales exports.

Adapters read workbooks, mapping detects columns and normalizes rows (pure),
services persist records with duplicate protection and archive the upload.
"""
