from datetime import datetime
from typing import Sequence

from ..models.episode import Episode
from ..models.summary import SummaryResult
from ..utils.text import format_timestamp


class MarkdownFormatter:
    def __init__(self, output_file: str = "summaries.md"):
        self.output_file = output_file

    def append_summary(self, episodes: Sequence[Episode], result: SummaryResult):
        """Prepends a new summary to the markdown file"""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M")
        heading = " + ".join(episode.title for episode in episodes)
        cost = result.cost_breakdown
        new_content = (
            f"# {heading}\n"
            f"*Generated on {timestamp}*\n\n"
            f"Audio: {result.audio_url} ({format_timestamp(result.actual_duration)} "
            f"of {format_timestamp(result.target_duration)} target, ${cost.total:.2f})\n\n"
            f"{result.summary_text}\n\n---\n\n"
        )

        # Read existing content if file exists
        existing_content = ""
        try:
            with open(self.output_file, "r", encoding="utf-8") as f:
                existing_content = f.read()
        except FileNotFoundError:
            pass

        # Write new content followed by existing content
        with open(self.output_file, "w", encoding="utf-8") as f:
            f.write(new_content + existing_content)
