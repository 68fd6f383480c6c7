"""
Backend — clients for external collaborators + catalogue service

- point_source: HttpPointSource (bright-star endpoint), StaticPointSource (built-in list)
- annotations: AnnotationStore CRUD client (id validated before dispatch)
- search: SearchClient for location search / viewport analysis (lenient JSON)
- server: FastAPI app exposing /maps, /stars/bright, /api/stars

Run the catalogue service:
    uvicorn backend.server:app --port 3001
"""
