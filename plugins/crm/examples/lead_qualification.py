#!/usr/bin/env python3
"""
Lead qualification workflow.

Validates incoming leads, scores them, records them in the CRM and marks
them qualified or unqualified depending on the score.

Usage:
    python -m plugins.crm.examples.lead_qualification --provider custom
    python -m plugins.crm.examples.lead_qualification --provider salesforce --verbose

The Salesforce provider reads its credentials from SALESFORCE_* environment
variables (SALESFORCE_API_KEY="username:password", SALESFORCE_CLIENT_ID, ...).
When the CRM cannot be reached the workflow still runs and assigns demo ids.
"""

import argparse
import asyncio
import logging
import sys
import time
from typing import Any, Dict, List, Optional

from config import env_manager
from cognio_core.errors import AgentError, ErrorCode
from cognio_core.events import AgentEvent, AgentEventType
from cognio_core.schemas import Lead
from cognio_core.types import ExecutionContext, RetryConfig, WorkflowResult, utcnow
from cognio_core.workflow import AgentWorkflow
from plugins.crm.agent import CRMAgent
from plugins.crm.types import CRMError

logger = logging.getLogger(__name__)

QUALIFICATION_THRESHOLD = 60
DECISION_MAKER_TITLES = ("ceo", "cto", "vp", "director", "founder")
TARGET_INDUSTRIES = ("technology", "software", "saas")

SAMPLE_LEADS: List[Dict[str, Any]] = [
    {
        "first_name": "John",
        "last_name": "Doe",
        "email": "john.doe@example.com",
        "phone": "+1-555-0100",
        "company": "Acme Corporation",
        "title": "CTO",
        "industry": "Technology",
    },
    {
        "first_name": "Jane",
        "last_name": "Smith",
        "email": "jane.smith@startup.io",
        "company": "StartupXYZ",
        "title": "Founder & CEO",
        "industry": "SaaS",
    },
    {
        "first_name": "Bob",
        "last_name": "Johnson",
        "email": "bob@smallco.com",
        "company": "SmallCo",
        "title": "Manager",
    },
]


def score_lead(lead: Dict[str, Any]) -> int:
    """
    Score a lead between 0 and 100.

    Company name longer than 10 characters: +20, phone number: +15,
    decision maker title: +30, target industry: +35.
    """
    score = 0

    if lead.get("company") and len(lead["company"]) > 10:
        score += 20

    if lead.get("phone"):
        score += 15

    title = (lead.get("title") or "").lower()
    if any(keyword in title for keyword in DECISION_MAKER_TITLES):
        score += 30

    if (lead.get("industry") or "").lower() in TARGET_INDUSTRIES:
        score += 35

    return score


def validate_lead(context: ExecutionContext) -> Dict[str, Any]:
    lead = context.data
    if not isinstance(lead, dict) or not lead.get("email") or not lead.get("company"):
        raise AgentError("Email and company are required", ErrorCode.INVALID_INPUT)
    return lead


def calculate_score(context: ExecutionContext) -> Dict[str, Any]:
    return {
        **context.data,
        "score": score_lead(context.data),
        "score_calculated_at": utcnow().isoformat(),
    }


def build_lead_qualification_workflow(
    crm_agent: Optional[CRMAgent] = None,
    timeout: float = 60.0,
    on_error: str = "stop",
) -> AgentWorkflow:
    """
    Build the lead qualification pipeline.

    Args:
        crm_agent: Agent used to record leads. Without one, leads get demo ids.
        timeout: Workflow timeout in seconds
        on_error: Failure strategy of the workflow

    Returns:
        The configured workflow
    """

    async def create_in_crm(context: ExecutionContext) -> Dict[str, Any]:
        lead = context.data
        if crm_agent is not None:
            try:
                record = await crm_agent.create_lead(
                    Lead(
                        first_name=lead.get("first_name"),
                        last_name=lead.get("last_name"),
                        email=lead["email"],
                        phone=lead.get("phone"),
                        company=lead.get("company"),
                        title=lead.get("title"),
                        industry=lead.get("industry"),
                        score=lead.get("score"),
                    )
                )
                return {**lead, "crm_id": record.id, "crm_provider_id": record.provider_id}
            except Exception as e:
                logger.warning(f"CRM not available, skipping creation: {e}")

        return {**lead, "crm_id": f"demo-{int(time.time() * 1000)}"}

    async def mark_as_qualified(context: ExecutionContext) -> Dict[str, Any]:
        crm_id = context.data.get("crm_id")
        if crm_agent is not None and crm_id and not crm_id.startswith("demo"):
            try:
                await crm_agent.update_lead(crm_id, {"status": "Qualified"})
            except CRMError as e:
                logger.warning(f"Could not update CRM status of {crm_id}: {e.message}")

        return {**context.data, "status": "Qualified", "qualified_at": utcnow().isoformat()}

    def mark_as_unqualified(context: ExecutionContext) -> Dict[str, Any]:
        return {
            **context.data,
            "status": "Unqualified",
            "rejected_at": utcnow().isoformat(),
            "rejection_reason": "Score too low",
        }

    workflow = AgentWorkflow(
        {"name": "lead-qualification-pipeline", "timeout": timeout, "on_error": on_error}
    )
    return (
        workflow.step("validate-lead", validate_lead)
        .step("calculate-score", calculate_score)
        .step("create-in-crm", create_in_crm)
        .when(
            lambda context: context.data["score"] >= QUALIFICATION_THRESHOLD,
            "mark-as-qualified",
            mark_as_qualified,
        )
        .when(
            lambda context: context.data["score"] < QUALIFICATION_THRESHOLD,
            "mark-as-unqualified",
            mark_as_unqualified,
        )
    )


def create_crm_agent(provider: str, timeout: float) -> CRMAgent:
    """Create the CRM agent for the chosen provider."""
    crm: Dict[str, Any] = {"provider": provider}

    if provider == "salesforce":
        credentials = env_manager.get_salesforce_parameters()
        crm["api_key"] = credentials.api_key or "demo:demo"
        crm["options"] = {"login_url": credentials.login_url}
        if credentials.client_id and credentials.client_secret and credentials.refresh_token:
            crm["oauth"] = {
                "client_id": credentials.client_id,
                "client_secret": credentials.client_secret,
                "refresh_token": credentials.refresh_token,
            }

    return CRMAgent(
        {
            "name": f"{provider}-crm",
            "crm": crm,
            "timeout": timeout,
            "retry": RetryConfig(max_attempts=1),
        }
    )


def log_workflow_event(event: AgentEvent) -> None:
    if event.type == AgentEventType.WORKFLOW_START:
        logger.info(f"Workflow started: {event.data['workflow']} ({event.data['steps']} steps)")
    elif event.type == AgentEventType.STEP_START:
        logger.info(f"  -> Step: {event.data['step']}")
    elif event.type == AgentEventType.STEP_COMPLETE:
        suffix = " (skipped)" if event.data.skipped else ""
        logger.info(f"  ok Step completed: {event.data.step}{suffix}")
    elif event.type == AgentEventType.STEP_ERROR:
        logger.warning(f"  !! Step failed: {event.data.step}: {event.error.message}")
    elif event.type == AgentEventType.WORKFLOW_COMPLETE:
        logger.info(f"Workflow completed in {event.data.execution_time:.3f}s")


def log_crm_event(event: AgentEvent) -> None:
    if event.type == AgentEventType.AGENT_COMPLETE:
        logger.debug(f"CRM operation completed in {event.data.execution_time:.3f}s")
    elif event.type == AgentEventType.AGENT_ERROR:
        logger.warning(f"CRM error: {event.error.message}")


async def process_leads(workflow: AgentWorkflow, leads: List[Dict[str, Any]]) -> List[WorkflowResult]:
    """Run the workflow for every lead and log a summary of each run."""
    results = []

    for lead in leads:
        logger.info("=" * 60)
        logger.info(f"Processing: {lead.get('first_name')} {lead.get('last_name')} - {lead.get('company')}")

        result = await workflow.execute(lead)
        results.append(result)

        if result.success:
            logger.info(
                f"Lead processed: score={result.data['score']} "
                f"status={result.data['status']} crm_id={result.data['crm_id']}"
            )
        else:
            logger.error(f"Lead processing failed: {result.error.message}")

        completed = sum(1 for step in result.steps if step.success)
        logger.info(f"Steps completed: {completed}/{len(result.steps)} in {result.execution_time:.3f}s")

    return results


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(description="Lead qualification workflow example")
    parser.add_argument(
        "--provider",
        choices=["custom", "salesforce"],
        default="custom",
        help="CRM provider to record leads in (default: in-memory)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="Timeout of each CRM operation in seconds",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI function."""
    args = create_parser().parse_args(argv)

    env_manager.load()
    level = "DEBUG" if args.verbose else env_manager.get_setting("log_level", "INFO")
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    crm_agent: Optional[CRMAgent] = create_crm_agent(args.provider, args.timeout)
    crm_agent.on_event(log_crm_event)

    try:
        await crm_agent.initialize()
        logger.info(f"CRM agent initialized ({args.provider})")
    except AgentError as e:
        logger.error(f"Failed to initialize CRM agent: {e.message}")
        logger.info("Running in demo mode without a CRM")
        await crm_agent.close()
        crm_agent = None

    workflow = build_lead_qualification_workflow(crm_agent)
    workflow.on_event(log_workflow_event)

    try:
        results = await process_leads(workflow, SAMPLE_LEADS)
    finally:
        if crm_agent is not None:
            await crm_agent.close()

    return 0 if all(result.success for result in results) else 1


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
