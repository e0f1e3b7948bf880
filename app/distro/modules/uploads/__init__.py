"""
Upload coordinator: presigned URL -> direct PUT to storage -> link key to track/release.
"""
