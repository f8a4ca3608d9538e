"""
UI module: Streamlit front-end.
"""
