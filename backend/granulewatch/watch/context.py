"""
Seed context for a pipeline run.

Keys handed to every run:
    Id          group id
    Version     configured processing version
    OutputDir   configured output directory
    <prefix>        full path of the file for each required prefix
    <prefix>_Name   that file's name without extension
"""

from granulewatch.pipeline.values import Context

from .models import FileGroup


def build_seed_context(group: FileGroup, version: str, output_dir: str) -> Context:
    """Build a fresh context for one run of a ready group."""
    context: Context = {
        "Id": group.id,
        "Version": version,
        "OutputDir": output_dir,
    }
    for prefix, tracked in group.files.items():
        context[prefix] = tracked.path
        context[f"{prefix}_Name"] = tracked.stem
    return context
