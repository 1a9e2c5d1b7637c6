import argparse
import logging
import os
import sys

from pitchscribe.pipeline.capture import FileSource, MicrophoneSource
from pitchscribe.pipeline.config import load_config
from pitchscribe.pipeline.errors import PitchscribeError
from pitchscribe.pipeline.instrumentation import SessionLogger
from pitchscribe.pipeline.session import LiveSession
from pitchscribe.pipeline.song import export_midi, save_song

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description="Record monophonic notes from a microphone or an audio file")
    parser.add_argument("--config", help="JSON file with config overrides")
    parser.add_argument("--input", help="Audio file to replay instead of the microphone")
    parser.add_argument("--seconds", type=float, default=10.0, help="Recording length for microphone input")
    parser.add_argument("--title", default="Untitled", help="Song title")
    parser.add_argument("--bpm", type=float, default=120.0, help="Tempo stored with the song")
    parser.add_argument("--output-json", default="song.json", help="Output song JSON path")
    parser.add_argument("--output-midi", default=None, help="Optional MIDI output path")
    parser.add_argument("--results-dir", default="results", help="Directory for session logs")
    return parser.parse_args()


def print_note(note):
    print(f"{note.start_time:>8} ms  {note.pitch:<4} ({note.duration} ms)")


def main():
    args = parse_args()
    config = load_config(args.config)
    session_logger = SessionLogger(base_dir=args.results_dir)

    if args.input:
        if not os.path.exists(args.input):
            logger.error(f"Audio file not found: {args.input}")
            return 1
        source = FileSource(args.input, sample_rate=config.capture.sample_rate, tick_hz=config.capture.tick_hz)
        session = LiveSession(config, source=source, listener=print_note,
                              clock=source.position_ms, session_logger=session_logger)
        session.start_recording()
        ticks = session.replay()
        logger.info(f"Replayed {ticks} ticks from {args.input}")
    else:
        source = MicrophoneSource(config.capture)
        session = LiveSession(config, source=source, listener=print_note, session_logger=session_logger)
        with source:
            logger.info(f"Recording for {args.seconds:.1f}s, play something...")
            session.start_recording()
            session.run_for(args.seconds)

    notes = session.stop_recording()
    logger.info(f"Total notes recorded: {len(notes)}")

    song = session.to_song(args.title, args.bpm)
    save_song(song, args.output_json)
    if args.output_midi:
        export_midi(song, args.output_midi)

    summary = session_logger.finalize()
    logger.info(f"Session summary: {summary['notes']}")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except PitchscribeError as e:
        logger.error(f"Recording failed: {e}")
        sys.exit(1)
