"""
API module: FastAPI service over the comparison pipeline.
"""
