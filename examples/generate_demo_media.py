#!/usr/bin/env python3
"""Generate a synthetic song and themed clips for a songreel demo.

Creates examples/demo-media/song.m4a (a 20s chord that swells and fades)
and eight clips in examples/demo-media/clips/, each a solid color with its
theme written on it. File names carry the theme so DirectoryClipSource
orders them by the song's mood.

Usage:
    python examples/generate_demo_media.py
    # Then build and render a project:
    songreel new examples/demo-media/song.m4a --clips examples/demo-media/clips \
        --output examples/demo-project.yaml --tempo 72 --energy 0.6
    songreel export --project examples/demo-project.yaml --output examples/demo.mp4
"""

import numpy as np
from moviepy import AudioClip, ColorClip, CompositeVideoClip, ImageClip
from pathlib import Path
from PIL import Image, ImageDraw, ImageFont

OUTPUT_DIR = Path(__file__).resolve().parent / "demo-media"
SIZE = (640, 360)
FPS = 24
SONG_DURATION = 20.0

# (theme, color, duration). Calm and sad themes plus two that match nothing.
CLIPS = [
    ("ocean",      (40, 110, 170),  6.0),
    ("nature",     (60, 150, 70),   4.0),
    ("serenity",   (150, 170, 200), 5.0),
    ("rain",       (80, 90, 110),   3.0),
    ("reflection", (120, 100, 140), 4.5),
    ("peace",      (200, 190, 150), 2.5),
    ("traffic",    (190, 60, 40),   3.0),
    ("office",     (110, 110, 110), 2.0),
]

CHORD_HZ = (220.0, 277.18, 329.63)  # A major


def _label_frame(theme: str) -> np.ndarray:
    """Theme name in white on a transparent frame."""
    img = Image.new("RGBA", SIZE, (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    try:
        font = ImageFont.truetype(
            "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf", 40
        )
    except OSError:
        font = ImageFont.load_default()
    bbox = draw.textbbox((0, 0), theme, font=font)
    tw, th = bbox[2] - bbox[0], bbox[3] - bbox[1]
    draw.text(
        ((SIZE[0] - tw) / 2, (SIZE[1] - th) / 2),
        theme,
        fill=(255, 255, 255, 255),
        font=font,
    )
    return np.array(img)


def _chord(t):
    t = np.asarray(t, dtype=float)
    envelope = np.sin(np.pi * np.clip(t / SONG_DURATION, 0.0, 1.0))
    wave = sum(np.sin(2 * np.pi * hz * t) for hz in CHORD_HZ) / len(CHORD_HZ)
    sample = 0.4 * envelope * wave
    return np.stack([sample, sample], axis=-1)


def _write_song(out: Path) -> None:
    song = AudioClip(_chord, duration=SONG_DURATION, fps=44100)
    song.write_audiofile(str(out), fps=44100, codec="aac", logger=None)


def main():
    clips_dir = OUTPUT_DIR / "clips"
    clips_dir.mkdir(parents=True, exist_ok=True)

    song_path = OUTPUT_DIR / "song.m4a"
    if song_path.exists():
        print("  skip song (exists)")
    else:
        _write_song(song_path)
        print(f"  wrote song ({SONG_DURATION}s)")

    for theme, color, duration in CLIPS:
        out = clips_dir / f"{theme}.mp4"
        if out.exists():
            print(f"  skip {theme} (exists)")
            continue

        body = ColorClip(size=SIZE, color=color, duration=duration)
        label = ImageClip(_label_frame(theme), duration=duration)
        final = CompositeVideoClip([body, label], size=SIZE)
        final.write_videofile(str(out), fps=FPS, logger=None)
        print(f"  wrote {theme} ({duration}s)")

    print(f"\nDone. Song and {len(CLIPS)} clips in {OUTPUT_DIR}")


if __name__ == "__main__":
    main()
