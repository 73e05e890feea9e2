"""
Services Layer

Catalog and scoring logic behind the routes:
- Formula evaluation and scoresheet value handling work on plain specs/dicts
- Bracket construction and advancement take a Session and the ORM rows
- Do NOT depend on HTTP request/response objects
- Raise domain exceptions; routes map them to status codes
"""
