#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Source Aggregator

Runs one discovery job end to end: queries every enabled source in
parallel, merges and deduplicates the results in priority order, enriches
thin snippets, extracts and verifies leads and hands them to the sink.
Progress is reported to the job registry at every stage.
"""

import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests
from bs4 import BeautifulSoup

from lead_discovery.config import AppConfig, config as default_config
from lead_discovery.exceptions import LeadDiscoveryError, SinkError, SourceTimeoutError
from lead_discovery.extraction.extractor import extract_all, generate_description
from lead_discovery.models.configuration import Configuration
from lead_discovery.models.job import JobStage, RunResult
from lead_discovery.models.lead import SCORED_FIELDS, CandidateResult, Lead, SourceKind, is_known
from lead_discovery.orchestration.job_registry import JobRegistry
from lead_discovery.sources.base import BaseSource, is_valid_article_url
from lead_discovery.sources.catalog import select_sources
from lead_discovery.sources.keywords import expand_keywords
from lead_discovery.utils.logger import get_logger, log_pipeline_event
from lead_discovery.verification.verifier import LeadVerifier, summarize_confidence

logger = get_logger(__name__)

MIN_SNIPPET_LENGTH = 120
MIN_FEED_SNIPPET_LENGTH = 100
MIN_PARAGRAPH_LENGTH = 40
POLL_INTERVAL_SECONDS = 0.25

COMPLETENESS_FIELDS = SCORED_FIELDS + ["url", "title"]


def deduplicate_candidates(candidates: List[CandidateResult]) -> Tuple[List[CandidateResult], int]:
    """
    Keep the first candidate for every valid URL.

    Args:
        candidates: Candidates in priority order

    Returns:
        Tuple: Unique candidates and the number dropped for a missing or
            invalid URL
    """
    seen = set()
    unique = []
    invalid = 0
    for candidate in candidates:
        if not candidate.url or not is_valid_article_url(candidate.url):
            invalid += 1
            continue
        if candidate.url in seen:
            continue
        seen.add(candidate.url)
        unique.append(candidate)
    return unique, invalid


def calculate_data_completeness(leads: List[Lead]) -> Dict[str, Any]:
    """
    Percentage of leads with each field filled in.

    Returns:
        Dict: Per-field percentages and their ``overall`` average
    """
    if not leads:
        empty = {name: 0 for name in COMPLETENESS_FIELDS}
        empty["overall"] = 0
        return empty

    completeness = {}
    for name in COMPLETENESS_FIELDS:
        if name in SCORED_FIELDS:
            filled = sum(1 for lead in leads if is_known(getattr(lead.fields, name)))
        else:
            filled = sum(1 for lead in leads if getattr(lead, name))
        completeness[name] = round(filled / len(leads) * 100)

    completeness["overall"] = round(sum(completeness.values()) / len(COMPLETENESS_FIELDS))
    return completeness


def extract_page_summary(html: str) -> Optional[str]:
    """First meaningful meta description or paragraph of an article page."""
    soup = BeautifulSoup(html, "html.parser")

    for attrs in ({"name": "description"}, {"property": "og:description"}):
        meta = soup.find("meta", attrs=attrs)
        content = (meta.get("content") or "").strip() if meta else ""
        if len(content) >= MIN_PARAGRAPH_LENGTH:
            return content

    for paragraph in soup.find_all("p"):
        text = " ".join(paragraph.get_text(" ", strip=True).split())
        if len(text) >= MIN_PARAGRAPH_LENGTH:
            return text

    return None


GROUP_LABELS = [
    (SourceKind.WEB, "web search engines"),
    (SourceKind.INDUSTRY, "industry sources"),
    (SourceKind.RSS, "RSS feeds"),
]


def group_sources(sources: List[BaseSource]) -> List[Tuple[str, List[BaseSource]]]:
    """
    Progress groups: one per API source, then the web search engines,
    the industry sources and the RSS feeds as one group each.
    """
    groups: List[Tuple[str, List[BaseSource]]] = [
        (source.name, [source]) for source in sources if source.kind == SourceKind.API
    ]
    for kind, label in GROUP_LABELS:
        members = [s for s in sources if s.kind == kind]
        if members:
            groups.append((label, members))
    return groups


class SourceAggregator:
    """
    Executes discovery runs.

    Sources, registry, sink, evasion layer and verifier are all injected so
    the aggregator can be exercised without network or database access.
    """

    def __init__(
        self,
        sources: List[BaseSource],
        registry: JobRegistry,
        sink,
        evasion=None,
        verifier: Optional[LeadVerifier] = None,
        app_config: Optional[AppConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = app_config or default_config
        self.sources = sources
        self.registry = registry
        self.sink = sink
        self.evasion = evasion
        self.verifier = verifier or LeadVerifier()
        self.max_workers = max(1, self.config.source_max_workers)
        self.source_timeout = self.config.source_timeout_seconds
        self.enrich_max_fetches = self.config.enrich_max_fetches
        self.keyword_expansion = self.config.keyword_expansion_enabled
        self._clock = clock

    def run(self, config: Configuration, job_id: str) -> RunResult:
        """
        Run discovery for a configuration.

        Args:
            config: Configuration snapshot
            job_id: Id of a job already created in the registry

        Returns:
            RunResult: Totals, leads, per-source errors and run statistics

        Raises:
            SinkError: If the sink fails to save the leads
        """
        try:
            return self._run(config, job_id)
        except SinkError:
            raise
        except Exception as e:
            logger.error(f"Discovery run {job_id} failed: {str(e)}", exc_info=True)
            self.registry.fail(job_id, f"Discovery failed: {str(e)}")
            raise

    def _run(self, config: Configuration, job_id: str) -> RunResult:
        errors: List[str] = []
        sources = select_sources(self.sources, config.sources)

        expanded = list(config.keywords)
        if self.keyword_expansion and any(s.expands_keywords for s in sources):
            expanded = expand_keywords(config.keywords)
            log_pipeline_event(job_id, JobStage.SCRAPING.value,
                               f"Expanded keywords from {len(config.keywords)} to {len(expanded)} terms")

        # Scraping
        self.registry.update(job_id, stage=JobStage.SCRAPING, progress=0,
                             total=max(1, len(sources)),
                             message=f"Searching {len(sources)} sources...")
        per_source = self._query_sources(sources, config, expanded, job_id, errors)

        candidates: List[CandidateResult] = []
        for source in sources:
            candidates.extend(per_source.get(source.key, []))

        unique, invalid_urls = deduplicate_candidates(candidates)
        unique = unique[:config.max_results]
        log_pipeline_event(job_id, JobStage.SCRAPING.value,
                           f"{len(candidates)} raw results, {len(unique)} after dedup")

        # Enriching
        self._enrich(unique, job_id)

        # Extracting
        self.registry.update(job_id, stage=JobStage.EXTRACTING, progress=0, total=max(1, len(unique)),
                             message=f"Extracting data from {len(unique)} results...")
        leads = []
        verifications = []
        for index, candidate in enumerate(unique, start=1):
            fields = extract_all(candidate.text)
            lead = Lead.from_candidate(candidate, fields)
            lead.description = generate_description(fields, candidate.source)
            verification = self.verifier.verify(lead)
            leads.append(verification.lead)
            verifications.append(verification)
            self.registry.update(job_id, progress=index)

        # Saving
        self.registry.update(job_id, stage=JobStage.SAVING, progress=0, total=1,
                             message=f"Saving {len(leads)} leads...")
        try:
            saved = self.sink.save_leads(config.user_id, leads)
        except Exception as e:
            message = f"Failed to save leads: {str(e)}"
            logger.error(f"Job {job_id}: {message}")
            self.registry.fail(job_id, message)
            raise SinkError(message) from e

        result = RunResult(
            total_results=len(unique),
            saved_leads=saved,
            leads=leads,
            errors=errors,
            sources=[s.key for s in sources],
            stats={
                "sourceCounts": {key: len(items) for key, items in per_source.items()},
                "dataCompleteness": calculate_data_completeness(leads),
                "verification": summarize_confidence(verifications),
                "urlValidation": {
                    "total": len(candidates),
                    "valid": len(candidates) - invalid_urls,
                    "rate": round((len(candidates) - invalid_urls) / len(candidates) * 100)
                    if candidates else 0,
                },
                "antiDetection": self.evasion.get_stats() if self.evasion else {},
            },
        )

        self.registry.complete(
            job_id, result,
            message=f"Discovery completed: {len(unique)} results, {saved} leads saved",
        )
        return result

    def _query_sources(
        self,
        sources: List[BaseSource],
        config: Configuration,
        expanded_keywords: List[str],
        job_id: str,
        errors: List[str],
    ) -> Dict[str, List[CandidateResult]]:
        """
        Query every source with bounded fan-out.

        A source that raises or outlives its timeout contributes nothing and
        is recorded in ``errors``. Progress is reported as each group
        finishes, counting the sources completed so far.
        """
        groups = group_sources(sources)
        group_of = {s.key: index for index, (_, members) in enumerate(groups) for s in members}
        remaining = [len(members) for _, members in groups]
        results: Dict[str, List[CandidateResult]] = {}
        started: Dict[str, float] = {}
        completed_sources = 0

        def query(source: BaseSource) -> List[CandidateResult]:
            started[source.key] = self._clock()
            keywords = expanded_keywords if source.expands_keywords else config.keywords
            return source.execute(keywords, config.max_results)

        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix=f"sources-{job_id}")
        try:
            pending: Dict[Future, BaseSource] = {executor.submit(query, s): s for s in sources}

            while pending:
                done, _ = wait(list(pending), timeout=POLL_INTERVAL_SECONDS, return_when=FIRST_COMPLETED)
                finished = []

                for future in done:
                    source = pending[future]
                    try:
                        results[source.key] = future.result()
                    except (LeadDiscoveryError, requests.RequestException, ValueError) as e:
                        errors.append(f"{source.name}: {str(e)}")
                        logger.warning(f"Source {source.name} failed: {str(e)}")
                    except Exception as e:
                        errors.append(f"{source.name}: {str(e)}")
                        logger.error(f"Unexpected error from source {source.name}: {str(e)}", exc_info=True)
                    finished.append(future)

                now = self._clock()
                for future, source in pending.items():
                    if future in done or source.key not in started:
                        continue
                    if now - started[source.key] > self.source_timeout:
                        error = SourceTimeoutError(f"timed out after {self.source_timeout:g}s")
                        errors.append(f"{source.name}: {str(error)}")
                        logger.warning(f"Source {source.name} {str(error)}")
                        future.cancel()
                        finished.append(future)

                for future in finished:
                    source = pending.pop(future)
                    completed_sources += 1
                    group = group_of[source.key]
                    remaining[group] -= 1
                    if remaining[group] == 0:
                        self.registry.update(
                            job_id, progress=completed_sources,
                            message=f"Searched {groups[group][0]} ({completed_sources}/{len(sources)} sources)",
                        )
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return results

    def _needs_enrichment(self, candidate: CandidateResult) -> bool:
        snippet = (candidate.snippet or "").strip()
        if candidate.kind == SourceKind.RSS and len(snippet) > MIN_FEED_SNIPPET_LENGTH:
            return False
        return len(snippet) < MIN_SNIPPET_LENGTH or snippet == candidate.title.strip()

    def _enrich(self, candidates: List[CandidateResult], job_id: str) -> None:
        """Replace thin snippets with the article's own summary, up to the fetch cap."""
        targets = []
        if self.evasion is not None:
            targets = [c for c in candidates if self._needs_enrichment(c)][:self.enrich_max_fetches]

        self.registry.update(job_id, stage=JobStage.ENRICHING, progress=0, total=max(1, len(targets)),
                             message=f"Enriching {len(targets)} results...")

        for index, candidate in enumerate(targets, start=1):
            try:
                response = self.evasion.request(candidate.url)
                summary = extract_page_summary(response.text)
                if summary:
                    candidate.snippet = summary
            except (LeadDiscoveryError, requests.RequestException) as e:
                logger.debug(f"Could not enrich {candidate.url}: {str(e)}")
            self.registry.update(job_id, progress=index)
