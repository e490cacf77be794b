"""Audio-to-video job pipeline.

Turns one audio file into a rendered, audio-muxed video by driving external
services (enhancement, transcription, remote generation) and ffmpeg, while
streaming progress events to an observer.
"""
