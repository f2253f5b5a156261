"""Render style profiles as text.

Modes:
- "compact": one-line summary for logs and listings
- "prompt": block injected into the drafting system prompt
- "detailed": every field, for inspection

Formatting is a pure projection of the profile: no computation beyond
rounding and ranking, no side effects.
"""

from typing import List

from .profile import StyleProfile

FORMAT_MODES = ("compact", "prompt", "detailed")


def describe_scale(value: float, low_label: str, high_label: str) -> str:
    """Describe a 0-1 value on a scale between two labels."""
    if value <= 0.2:
        return f"{low_label} ({value:.2f})"
    if value <= 0.4:
        return f"somewhat {low_label} ({value:.2f})"
    if value <= 0.6:
        return f"moderate ({value:.2f})"
    if value <= 0.8:
        return f"somewhat {high_label} ({value:.2f})"
    return f"{high_label} ({value:.2f})"


def format_profile(profile: StyleProfile, mode: str = "prompt") -> str:
    """Format a profile for humans or for a generation prompt.

    Args:
        profile: Profile to render.
        mode: One of "compact", "prompt" or "detailed".

    Raises:
        ValueError: If mode is unknown.
    """
    if mode == "compact":
        return _format_compact(profile)
    if mode == "prompt":
        return _format_prompt(profile)
    if mode == "detailed":
        return _format_detailed(profile)
    raise ValueError(f"Unknown format mode '{mode}'. Expected one of {FORMAT_MODES}")


def _format_compact(profile: StyleProfile) -> str:
    d = profile.dimensions
    parts = [
        describe_scale(d.verbosity, "terse", "verbose"),
        describe_scale(d.formality, "casual", "formal"),
        f"{profile.avg_sentence_length:.0f}w/sentence (sd {profile.sentence_length_std_dev:.0f})",
        f"readability {profile.readability_score:.0f}",
        f"opens {profile.dominant_opening}",
        f"{profile.sample_count} samples",
    ]
    return " | ".join(parts)


def _format_prompt(profile: StyleProfile) -> str:
    d = profile.dimensions
    lines = ["STYLE PROFILE (match these metrics):"]
    lines.append(f"  Formality: {describe_scale(d.formality, 'casual', 'formal')}")
    lines.append(f"  Structure: {describe_scale(d.structure, 'free-flowing', 'highly structured')}")
    lines.append(f"  Technicality: {describe_scale(d.technicality, 'non-technical', 'very technical')}")
    lines.append(
        f"  Average sentence length: {profile.avg_sentence_length:.1f} words "
        f"(std dev: {profile.sentence_length_std_dev:.1f})"
    )
    lines.append(
        f"  Average paragraph length: {profile.avg_paragraph_length:.1f} words "
        f"(variation: {profile.paragraph_length_variation:.2f})"
    )
    lines.append(f"  Questions: {profile.question_rate * 100:.0f}% of sentences")
    lines.append(f"  Contractions: {profile.contraction_rate:.2f} per sentence")
    lines.append(f"  First-person pronouns: {profile.first_person_rate:.2f} per sentence")
    lines.append(f"  Second-person pronouns: {profile.second_person_rate:.2f} per sentence")
    lines.append(f"  Vocabulary richness: {profile.vocabulary_richness:.2f}")
    lines.append(f"  Readability (Flesch): {profile.readability_score:.1f}")
    lines.append(f"  Opening style: {profile.dominant_opening}")
    lines.append(f"  Closing style: {profile.dominant_closing}")

    bigrams = profile.ranked_bigrams(10)
    if bigrams:
        lines.append("  Characteristic phrases: " + ", ".join(f'"{b}"' for b in bigrams))

    habits = _format_habits(profile)
    if habits:
        lines.append(f"  Formatting preferences: uses {', '.join(habits)}")

    return "\n".join(lines)


def _format_detailed(profile: StyleProfile) -> str:
    d = profile.dimensions
    lines = [f"Style Profile ({profile.sample_count} samples)", ""]

    lines.append("-- Dimensions --")
    lines.append(f"  Verbosity:    {d.verbosity:.2f}")
    lines.append(f"  Formality:    {d.formality:.2f}")
    lines.append(f"  Structure:    {d.structure:.2f}")
    lines.append(f"  Technicality: {d.technicality:.2f}")
    lines.append("")

    lines.append("-- Metrics --")
    lines.append(
        f"  Avg sentence length:    {profile.avg_sentence_length:.1f} "
        f"(variance {profile.sentence_length_variance:.1f})"
    )
    lines.append(
        f"  Avg paragraph length:   {profile.avg_paragraph_length:.1f} "
        f"(variation {profile.paragraph_length_variation:.2f})"
    )
    lines.append(f"  Vocabulary richness:    {profile.vocabulary_richness:.3f}")
    lines.append(f"  Avg word length:        {profile.avg_word_length:.1f}")
    lines.append(f"  Question rate:          {profile.question_rate:.3f}")
    lines.append(f"  Exclamation rate:       {profile.exclamation_rate:.3f}")
    lines.append(f"  Contraction rate:       {profile.contraction_rate:.3f}")
    lines.append(f"  First-person rate:      {profile.first_person_rate:.3f}")
    lines.append(f"  Second-person rate:     {profile.second_person_rate:.3f}")
    lines.append(f"  Transition word rate:   {profile.transition_word_rate:.3f}")
    lines.append(f"  Passive voice rate:     {profile.passive_voice_rate:.3f}")
    lines.append(f"  Data reference rate:    {profile.data_reference_rate:.3f}")
    lines.append(f"  Readability (Flesch):   {profile.readability_score:.1f}")
    lines.append("")

    lines.append("-- Patterns --")
    lines.append(f"  Openings:  {_format_counts(profile.opening_patterns)}")
    lines.append(f"  Closings:  {_format_counts(profile.closing_patterns)}")
    lines.append(f"  Format:    {_format_counts(profile.format_features)}")
    lines.append(f"  Bigrams:   {', '.join(profile.ranked_bigrams()) or '(none)'}")

    return "\n".join(lines)


def _format_habits(profile: StyleProfile) -> List[str]:
    labels = {
        "headings": "headings",
        "bullets": "bullet points",
        "numbered_lists": "numbered lists",
        "tables": "tables",
    }
    return [label for key, label in labels.items() if profile.uses(key)]


def _format_counts(counts) -> str:
    if not counts:
        return "(none)"
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return ", ".join(f"{key} x{n}" for key, n in ranked)
