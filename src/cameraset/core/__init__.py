"""
Reference camera models satisfying the projection capability used by `CameraSet`.
"""
