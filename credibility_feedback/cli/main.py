"""Operator CLI for the credibility feedback pipeline using Typer and Rich."""

import asyncio
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from credibility_feedback.config.logging import get_logger
from credibility_feedback.config.settings import settings
from credibility_feedback.data_management.kv_store import TieredStorage
from credibility_feedback.data_management.schemas.consensus_schema import CredibilityScore
from credibility_feedback.data_management.schemas.feedback_schema import FeedbackType
from credibility_feedback.errors import StorageUnavailable
from credibility_feedback.pipeline.feedback_pipeline import FeedbackPipeline
from credibility_feedback.pipeline.score_sink import KeyValueScoreSink

__version__ = "0.1.0"

# Initialize CLI app
app = typer.Typer(
    help="Credibility feedback pipeline - intake, anti-abuse and score integration",
    add_completion=False,
)

console = Console()

logger = get_logger("cli")


def _pipeline() -> FeedbackPipeline:
    """Pipeline over the file-backed stores in settings.data_dir."""
    storage = TieredStorage.on_disk(settings.data_dir)
    return FeedbackPipeline.create(
        storage=storage,
        score_sink=KeyValueScoreSink(storage.local),
    )


def _fail(error: Exception) -> NoReturn:
    console.print(f"\n[red]✗[/red] Error: {error}")
    logger.error(f"CLI command failed: {error}")
    raise typer.Exit(1)


@app.command()
def status() -> None:
    """
    Display pipeline configuration.

    Shows storage location, screening thresholds, retention and quota.
    """
    logger.info("Displaying pipeline status")

    table = Table(title="Feedback Pipeline Status", show_header=True, header_style="bold magenta")
    table.add_column("Component", style="cyan", width=20)
    table.add_column("Details", style="yellow")

    table.add_row("Storage", f"{settings.data_dir} (sync.json + local.json)")
    table.add_row(
        "Rate limits",
        f"{settings.rate_limit_per_minute}/min, {settings.rate_limit_per_hour}/h, "
        f"{settings.rate_limit_per_day}/day",
    )
    table.add_row(
        "Spam screening",
        f"threshold {settings.spam_threshold}, combination '{settings.spam_combination}', "
        f"reject above {settings.rejection_confidence}",
    )
    table.add_row(
        "Retention",
        f"feedback {settings.feedback_retention_days}d, spam {settings.spam_retention_days}d, "
        f"clusters {settings.cluster_retention_days}d",
    )
    table.add_row(
        "Quota",
        f"{settings.max_storage_bytes:,} bytes / {settings.max_records:,} records, "
        f"cleanup at {settings.cleanup_threshold:.0%}",
    )
    table.add_row(
        "Integration",
        f"min {settings.min_feedback_for_impact} records, weight {settings.base_feedback_weight}"
        f" (cap {settings.max_feedback_weight})",
    )
    table.add_row("Logging", f"Level: {settings.log_level}, Format: {settings.log_format}")

    console.print(table)


@app.command()
def metrics() -> None:
    """Display storage usage of the feedback store."""
    try:
        result = asyncio.run(_pipeline().store.metrics())
    except StorageUnavailable as e:
        _fail(e)

    table = Table(title="Storage Metrics", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Records", str(result.total_records))
    table.add_row("Spam records", str(result.spam_records))
    table.add_row("Clusters", str(result.cluster_count))
    table.add_row("Storage bytes", f"{result.storage_bytes:,}")
    table.add_row("Quota used", f"{result.quota_used:.1%}")
    table.add_row("Oldest record", str(result.oldest_record_at or "-"))
    table.add_row("Newest record", str(result.newest_record_at or "-"))
    table.add_row("Retention compliance", f"{result.retention_compliance_rate:.1%}")
    console.print(table)


@app.command()
def consensus(url: str = typer.Argument(..., help="Page URL")) -> None:
    """Display the community consensus for a URL."""
    try:
        snapshot = asyncio.run(_pipeline().consensus(url))
    except StorageUnavailable as e:
        _fail(e)

    table = Table(title=f"Consensus: {url}", show_header=True, header_style="bold magenta")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Counted records", str(snapshot.total_counted))
    table.add_row("Agree / Disagree / Issues",
                  f"{snapshot.agree_count} / {snapshot.disagree_count} / {snapshot.issue_count}")
    table.add_row("Agreement rate", f"{snapshot.agreement_rate:.1%}")
    table.add_row("Consensus strength", f"{snapshot.consensus_strength:.2f}")
    table.add_row("Confidence level", snapshot.confidence_level.value)
    table.add_row("Trend", snapshot.trend.value)
    table.add_row("Community trust", f"{snapshot.community_trust:.2f}")
    table.add_row("Strong consensus", "yes" if snapshot.has_strong_consensus else "no")
    console.print(table)


@app.command()
def stats(url: str = typer.Argument(..., help="Page URL")) -> None:
    """Display stored feedback counts for a URL, spam included."""
    try:
        result = asyncio.run(_pipeline().store.stats(url))
    except StorageUnavailable as e:
        _fail(e)

    table = Table(title=f"Feedback Stats: {url}", show_header=True, header_style="bold magenta")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Records", str(result.total))
    table.add_row("Agree / Disagree / Issues", f"{result.agree} / {result.disagree} / {result.issues}")
    table.add_row("Spam", str(result.spam))
    table.add_row("Agreement rate", f"{result.agreement_rate:.1%}")
    table.add_row("Mean confidence", f"{result.mean_confidence:.2f}")
    table.add_row("Last updated", str(result.last_updated_at or "-"))
    console.print(table)


@app.command()
def cleanup() -> None:
    """Delete expired records and stale clusters."""
    try:
        report = asyncio.run(_pipeline().cleanup())
    except StorageUnavailable as e:
        _fail(e)

    console.print(
        f"[green]✓[/green] Removed {report.records_removed} records and "
        f"{report.clusters_removed} clusters"
    )


@app.command()
def clusters(
    min_members: int = typer.Option(5, help="Minimum cluster size to flag"),
    min_spam_score: float = typer.Option(0.5, help="Minimum mean spam score to flag"),
    show_all: bool = typer.Option(False, "--all", help="List every cluster"),
) -> None:
    """List suspicious feedback clusters (or all clusters with --all)."""
    pipeline = _pipeline()

    async def load():
        if show_all:
            return [(c, "") for c in await pipeline.store.list_clusters()]
        flagged = await pipeline.assigner.suspicious_clusters(min_members, min_spam_score)
        return [(s.cluster, s.reason) for s in flagged]

    try:
        rows = asyncio.run(load())
    except StorageUnavailable as e:
        _fail(e)

    if not rows:
        console.print("[dim]No clusters to show[/dim]")
        return

    table = Table(title="Feedback Clusters", show_header=True, header_style="bold magenta")
    table.add_column("Cluster", style="cyan")
    table.add_column("Signature", style="yellow")
    table.add_column("Members", justify="right")
    table.add_column("Mean spam", justify="right")
    table.add_column("Reason", style="red")
    for cluster, reason in rows:
        table.add_row(
            cluster.id[:12],
            cluster.signature.key,
            str(cluster.member_count),
            f"{cluster.mean_spam_score:.2f}",
            reason,
        )
    console.print(table)


@app.command()
def submit(
    url: str = typer.Option(..., prompt="Page URL"),
    feedback_type: FeedbackType = typer.Option(FeedbackType.AGREE, "--type", help="agree, disagree or report_issue"),
    submitter: str = typer.Option("operator", help="Submitter id"),
    text: Optional[str] = typer.Option(None, help="Free-text comment"),
    confidence: float = typer.Option(0.5, min=0.0, max=1.0, help="Stated confidence"),
    score: float = typer.Option(..., prompt="Current credibility score", min=0.0, max=100.0),
    score_confidence: float = typer.Option(0.5, min=0.0, max=1.0, help="Confidence of the current score"),
    issue_category: Optional[str] = typer.Option(None, help="Issue category for report_issue"),
) -> None:
    """Submit one piece of feedback through the full pipeline."""
    logger.info(f"Manual submission for {url}")

    payload = {
        "feedback_type": feedback_type.value,
        "url": url,
        "submitter_id": submitter,
        "free_text": text,
        "stated_confidence": confidence,
        "issue_category": issue_category,
    }
    credibility = CredibilityScore(score=score, confidence=score_confidence)
    result = asyncio.run(_pipeline().submit_feedback(payload, credibility))

    lines = [
        f"Success: {result.success}",
        f"State: {result.final_state.value}",
        f"Message: {result.message}",
    ]
    if result.feedback_id:
        lines.append(f"Feedback id: {result.feedback_id}")
    if result.spam_verdict:
        verdict = result.spam_verdict
        lines.append(
            f"Spam: {verdict.is_spam} (confidence {verdict.confidence:.2f}, risk {verdict.risk_level.value})"
        )
        lines.extend(f"  - {reason}" for reason in verdict.reasons)
    if result.integration_result:
        integration = result.integration_result
        lines.append(
            f"Score: {integration.original_score:.0f} -> {integration.adjusted_score} "
            f"(weight {integration.weight_applied:.3f})"
        )
        lines.append(f"Reasoning: {integration.reasoning}")
    lines.extend(f"  ! {error}" for error in result.errors)

    console.print(Panel(
        "\n".join(lines),
        title="Submission Result",
        border_style="green" if result.success else "red",
    ))
    if not result.success and result.error_code:
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Display version information."""
    console.print("[bold]Credibility Feedback Pipeline[/bold]")
    console.print(f"Version: {__version__}")


if __name__ == "__main__":
    app()
