"""File upload and storage for chat attachments.

Uploaded files are stored flat in the upload directory under UUID-based
names and served back from ``/uploads/{filename}``. Metadata for each
upload is tracked in DuckDB.

Clients post the returned descriptor as a ``file`` (or ``image``) chat
event; the upload itself never touches the message store.
"""
