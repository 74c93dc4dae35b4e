"""
Media Cleanup Service - очередь удаления blob объектов медиатеки.
"""

__version__ = "0.1.0"
