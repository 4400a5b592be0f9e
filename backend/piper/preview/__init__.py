"""Link previews (OpenGraph title, description and image) for chat URLs."""
