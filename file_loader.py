"""
Helper module to read the sales CSV from either disk or a Streamlit uploaded buffer.
"""
import pandas as pd
import os
import streamlit as st


def get_file_source(file_key: str, file_path: str):
    """
    Returns a file-like object or path for reading a CSV.

    Priority:
    1. If an uploaded file exists in session_state.uploaded_files, use that buffer
    2. Otherwise, use the file_path (disk or env var)

    Args:
        file_key: key in st.session_state.uploaded_files (e.g., 'sales')
        file_path: fallback file path

    Returns:
        tuple: (source, is_uploaded) where source is file-like or path, is_uploaded is bool
    """
    # st.session_state is not available when running outside a Streamlit script
    try:
        uploaded_files = st.session_state.get('uploaded_files', {})
    except (AttributeError, RuntimeError):
        uploaded_files = {}

    if file_key in uploaded_files:
        source = uploaded_files[file_key]
        if hasattr(source, 'seek'):
            source.seek(0)
        return source, True
    elif file_path and os.path.isfile(os.path.abspath(file_path)):
        return file_path, False
    else:
        return None, False


def safe_read_csv(file_key: str, file_path: str, **kwargs):
    """
    Read a CSV from either an uploaded buffer or disk.

    Args:
        file_key: key in st.session_state.uploaded_files
        file_path: fallback file path
        **kwargs: passed to pd.read_csv()

    Returns:
        pd.DataFrame

    Raises:
        FileNotFoundError: when neither an upload nor the file on disk exists
    """
    source, is_uploaded = get_file_source(file_key, file_path)

    if source is None:
        raise FileNotFoundError(f"File not found: {file_path} (and no uploaded file)")

    # pandas.read_csv handles both file paths and file-like objects (BytesIO, etc.)
    return pd.read_csv(source, **kwargs)
