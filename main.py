#!/usr/bin/env python3
import asyncio
import os
import sys

import httpx
from tqdm.auto import tqdm

from podsummary.exceptions import PipelineError
from podsummary.models.episode import TARGET_DURATIONS, Episode, SummaryRequest
from podsummary.processors.markdown_formatter import MarkdownFormatter
from podsummary.processors.metadata_lookup import is_valid_spotify_url, lookup_episode_metadata
from podsummary.services import build_pipeline
from podsummary.utils.config import load_config


async def resolve_episode(url, listennotes_api_key):
    """
    Builds an Episode from a Spotify episode URL (via metadata lookup)
    or from a direct audio URL.
    """
    if is_valid_spotify_url(url):
        metadata = await lookup_episode_metadata(url, listennotes_api_key)
        if not metadata.audio_url:
            print(f"Warning: no audio URL found for '{metadata.title}'. Set LISTENNOTES_API_KEY to look it up.")
        return Episode(
            url=url,
            title=metadata.title,
            show_name=metadata.show_name,
            duration=metadata.duration,
            audio_url=metadata.audio_url,
        )

    title = os.path.basename(url.split("?")[0]) or url
    return Episode(url=url, title=title, duration=0, audio_url=url)


USAGE = "Usage: python main.py [--minutes=1|5|10] <episode URL> [<episode URL> ...]"


def parse_args(argv):
    minutes = 5
    urls = []
    for arg in argv:
        if arg.startswith("--minutes="):
            value = arg.split("=", 1)[1]
            try:
                minutes = int(value)
            except ValueError:
                raise ValueError(f"--minutes must be a whole number, got '{value}'") from None
        else:
            urls.append(arg)
    return minutes, urls


async def summarize(urls, minutes, config):
    episodes = [await resolve_episode(url, config.credentials.listennotes_api_key) for url in urls]
    request = SummaryRequest(episodes=episodes, target_duration=minutes)
    pipeline = build_pipeline(config)

    progress_bar = tqdm(total=100, desc="Starting", bar_format="{desc} {bar} {percentage:3.0f}%")

    async def on_progress(progress):
        progress_bar.set_description(progress.message)
        progress_bar.n = progress.percentage
        progress_bar.refresh()

    try:
        result = await pipeline.run(request, config.credentials, on_progress)
        progress_bar.set_description("Done")
        progress_bar.n = progress_bar.total
        progress_bar.refresh()
        return episodes, result
    except Exception:
        progress_bar.set_description(f"Failed: {progress_bar.desc}")
        progress_bar.refresh()
        raise
    finally:
        progress_bar.close()


def main():
    try:
        minutes, urls = parse_args(sys.argv[1:])
    except ValueError as e:
        print(f"{e}\n{USAGE}")
        sys.exit(1)
    if not urls:
        print(f"No episode URLs provided.\n{USAGE}")
        sys.exit(1)
    if minutes not in TARGET_DURATIONS:
        print(f"--minutes must be one of {', '.join(str(m) for m in TARGET_DURATIONS)}")
        sys.exit(1)

    config = load_config()
    missing = config.missing_credentials()
    if missing:
        print(f"Missing API keys: {', '.join(missing)}. Please set them as environment variables.")
        sys.exit(1)

    if len(urls) > 1:
        print(f"\nSummarizing {len(urls)} episodes into {minutes} minute(s):")

    try:
        episodes, result = asyncio.run(summarize(urls, minutes, config))
    except KeyboardInterrupt:
        print("\nProcess interrupted by user. Exiting gracefully.")
        sys.exit(0)
    except (PipelineError, ValueError, httpx.HTTPError) as e:
        print(f"\nError creating summary: {e}")
        sys.exit(1)

    MarkdownFormatter(output_file=config.summaries_file).append_summary(episodes, result)
    print(f"\nAudio saved to {result.audio_url}")
    print(f"Estimated cost: ${result.cost_breakdown.total:.4f}")
    print(f"Summary has been added to {config.summaries_file}")


if __name__ == "__main__":
    main()
