"""songreel — assemble a song and a sequence of clips into a music video.

Clips are placed back-to-back on a global timeline anchored to the song,
each with an entry transition and an optional color grade. The timeline is
rendered with moviepy by an export pipeline that reports progress and
supports cancellation, driven by a small export session state machine.
"""
