"""
HTTP boundary.

- **app.py**: FastAPI application factory, routes and error rendering.
- **models.py**: Pydantic response models.
- **manual_form.html**: Operator form served by ``GET /manual``.
"""
