"""
AI Service — Multi-provider AI (OpenAI GPT, Anthropic Claude) for campaign audits,
chat, budget forecasts, anomaly alerts and ad copy.
The assistant only ever sees reconciled campaigns (linked to a client).
"""

import json
import logging
from typing import Optional
from openai import AsyncOpenAI
from anthropic import AsyncAnthropic
from adpulse.config import get_settings
from adpulse.schemas import CampaignStats

logger = logging.getLogger(__name__)

REPORT_PROMPT = """You are a world-class growth strategist for Meta (Facebook/Instagram) ads.
Provide a highly structured audit of the campaigns below:
1. **Health** — overall state with specific numbers
2. **Accelerators** — what is working and should get more budget
3. **Leaks** — spend that is not converting
4. **24h Action** — the single most important thing to do today

Key metrics:
- CTR = Clicks / Impressions
- CPC = Spend / Clicks
- CPA = Spend / Conversions
- ROAS = estimated revenue / Spend (estimate based on an average order value)

Use markdown with short tables. Never invent campaigns that are not in the data."""

CHAT_PROMPT = """You are the AdPulse assistant for a marketing agency.
You help account managers and their clients understand Meta ads performance.
When campaign data is provided, answer with actual numbers from it.
If the data does not contain what is asked, say so and show what is available.
Tone: dynamic, professional, concise (2-4 sentences unless a table is needed)."""

ANALYST_PROMPT = """You are a senior Meta ads analyst. Answer in concise markdown."""

MAX_CAMPAIGNS_IN_CONTEXT = 50


def _parse_model_id(model_id: Optional[str]) -> tuple[str, str]:
    """Parse 'provider:model' into (provider, model). Fallback to OpenAI config."""
    if model_id and ":" in model_id:
        p, m = model_id.split(":", 1)
        return (p.strip().lower(), m.strip())
    return ("openai", get_settings().openai_model)


def campaign_lines(campaigns: list[CampaignStats]) -> str:
    """One line per campaign with the figures the prompts refer to."""
    lines = []
    for c in campaigns[:MAX_CAMPAIGNS_IN_CONTEXT]:
        lines.append(
            f"- {c.name} [{c.status.value}, {c.data_source.value}]: spend {c.spend:.2f} {c.currency}, "
            f"impressions {c.impressions}, clicks {c.clicks}, conversions {c.conversions}, "
            f"CTR {c.ctr * 100:.2f}%, CPC {c.cpc:.2f}, CPA {c.cpa:.2f}, ROAS {c.roas:.2f}"
        )
    if len(campaigns) > MAX_CAMPAIGNS_IN_CONTEXT:
        lines.append(f"... and {len(campaigns) - MAX_CAMPAIGNS_IN_CONTEXT} more campaign(s)")
    return "\n".join(lines) if lines else "(no campaigns linked yet)"


class AIService:
    """Multi-provider AI service for Meta ads intelligence (OpenAI GPT, Anthropic Claude)."""

    def __init__(
        self,
        model_id: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
    ):
        settings = get_settings()
        self.provider, self.model = _parse_model_id(model_id or settings.ai_model_id)
        self._openai_client: Optional[AsyncOpenAI] = None
        self._anthropic_client: Optional[AsyncAnthropic] = None

        # Use passed keys, else env
        openai_key = openai_api_key or settings.openai_api_key
        anthropic_key = anthropic_api_key or settings.anthropic_api_key

        if self.provider == "openai":
            if not openai_key:
                raise ValueError("OPENAI_API_KEY not configured. Add an AI key in Settings or set OPENAI_API_KEY env.")
            self._openai_client = AsyncOpenAI(api_key=openai_key)
        elif self.provider == "anthropic":
            if not anthropic_key:
                raise ValueError("ANTHROPIC_API_KEY not configured. Add an AI key in Settings or set ANTHROPIC_API_KEY env.")
            self._anthropic_client = AsyncAnthropic(api_key=anthropic_key)
        else:
            raise ValueError(f"Unknown AI provider: {self.provider}")

    async def _completion(
        self,
        messages: list[dict],
        temperature: float = 0.3,
        max_tokens: int = 2000,
        json_response: bool = False,
    ) -> str:
        """Call the appropriate provider's completion API."""
        if self.provider == "openai":
            kwargs = dict(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
            if json_response:
                kwargs["response_format"] = {"type": "json_object"}
            response = await self._openai_client.chat.completions.create(**kwargs)
            return response.choices[0].message.content or ""

        # Anthropic: convert messages to their format
        system = ""
        anthropic_messages = []
        for m in messages:
            role = m.get("role", "user")
            content = m.get("content", "")
            if role == "system":
                system += content + "\n\n" if content else ""
            else:
                anthropic_messages.append({"role": "user" if role == "user" else "assistant", "content": content})

        kwargs = dict(model=self.model, max_tokens=max_tokens, messages=anthropic_messages)
        if system:
            kwargs["system"] = system.strip()
        response = await self._anthropic_client.messages.create(**kwargs)
        if response.content and response.content[0].type == "text":
            return response.content[0].text
        return ""

    async def generate_report(self, campaigns: list[CampaignStats]) -> str:
        messages = [
            {"role": "system", "content": REPORT_PROMPT},
            {"role": "user", "content": f"Campaign data:\n{campaign_lines(campaigns)}\n\nRun a global audit."},
        ]
        try:
            content = await self._completion(messages, temperature=0.2)
        except Exception as e:
            logger.error(f"AI report generation failed: {e}")
            raise
        return content or "Report generation returned no content."

    async def chat(
        self,
        user_message: str,
        conversation_history: list[dict] = None,
        campaigns: Optional[list[CampaignStats]] = None,
    ) -> dict:
        """General assistant chat, optionally grounded on the viewer's campaigns."""
        messages = [{"role": "system", "content": CHAT_PROMPT}]
        if campaigns:
            messages.append({"role": "system", "content": f"Current campaign data:\n{campaign_lines(campaigns)}"})

        if conversation_history:
            for msg in conversation_history[-20:]:  # Last 20 messages for context
                messages.append({
                    "role": "user" if msg.get("role") == "user" else "assistant",
                    "content": msg.get("content", ""),
                })

        messages.append({"role": "user", "content": user_message})

        try:
            content = await self._completion(messages, temperature=0.5, max_tokens=1000)
            return {"message": content or "I'm here to help you grow your campaigns."}
        except Exception as e:
            logger.error(f"AI chat failed: {e}")
            raise

    async def forecast_budget(self, campaigns: list[CampaignStats], spend_increase_pct: float = 20.0) -> str:
        prompt = (
            f"Data:\n{campaign_lines(campaigns)}\n\n"
            f"Predict next month's performance assuming spend changes by {spend_increase_pct:+.0f}%. "
            f"Give 3 KPIs and 1 key recommendation."
        )
        messages = [{"role": "system", "content": ANALYST_PROMPT}, {"role": "user", "content": prompt}]
        return await self._completion(messages, temperature=0.3) or "Forecast unavailable."

    async def suggest_copy(self, campaigns: list[CampaignStats]) -> str:
        """Ad hooks inspired by the most efficient converting campaigns."""
        converting = [c for c in campaigns if c.conversions > 0 and c.spend > 0]
        converting.sort(key=lambda c: c.conversions / c.spend, reverse=True)
        context = "\n".join(f"- {c.name}" for c in converting[:10]) or "(no converting campaigns yet)"
        prompt = (
            f"Based on these high-performing campaign names:\n{context}\n"
            f"Write 3 irresistible ad hooks and 2 descriptions for Meta Ads. "
            f"Style: direct, customer benefit first, urgent."
        )
        messages = [{"role": "system", "content": ANALYST_PROMPT}, {"role": "user", "content": prompt}]
        return await self._completion(messages, temperature=0.8) or "Suggestions unavailable."

    async def detect_anomalies(self, campaigns: list[CampaignStats]) -> dict:
        prompt = f"""Analyze this data for anomalies:
{campaign_lines(campaigns)}

Look for: high spend with no conversions, abnormally low CTR, "dead" campaigns still consuming budget.
Respond ONLY with valid JSON:
{{
    "alerts": [
        {{"campaign": "name", "severity": "critical|warning", "issue": "what is wrong", "action": "what to do"}}
    ]
}}
List at most 3 critical alerts."""
        messages = [{"role": "system", "content": ANALYST_PROMPT}, {"role": "user", "content": prompt}]
        content = await self._completion(messages, temperature=0.2, json_response=True)
        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            return {"alerts": [], "summary": content}
        alerts = data.get("alerts") if isinstance(data, dict) else None
        return {"alerts": alerts if isinstance(alerts, list) else []}

    async def ping(self) -> bool:
        content = await self._completion([{"role": "user", "content": "Ping"}], max_tokens=5)
        return bool(content)


def create_ai_service(model_id: Optional[str] = None, api_key: Optional[str] = None) -> AIService:
    """
    Factory function to create an AI service instance. ``api_key`` (the AI secret
    from the vault) overrides the env key of whichever provider is selected.
    """
    provider, _ = _parse_model_id(model_id or get_settings().ai_model_id)
    if provider == "anthropic":
        return AIService(model_id=model_id, anthropic_api_key=api_key)
    return AIService(model_id=model_id, openai_api_key=api_key)


async def test_connection(api_key: Optional[str] = None, model_id: Optional[str] = None) -> dict:
    """Round-trip a tiny prompt to validate the configured key."""
    try:
        service = create_ai_service(model_id=model_id, api_key=api_key)
        ok = await service.ping()
    except Exception as e:
        logger.warning(f"AI connection test failed: {e}")
        return {"status": "error", "error": str(e)}
    if not ok:
        return {"status": "error", "error": "Empty response from provider"}
    return {"status": "connected", "provider": service.provider, "model": service.model}
