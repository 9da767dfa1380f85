"""
Notification Renderer

Builds the guardian-facing alert email for an overdue subject.

Pure functions only: no store, no network, no clock. The same inputs
always produce byte-identical output, so a retried sweep re-renders the
exact message it failed to send last time.
"""

from dataclasses import dataclass

DEFAULT_LANGUAGE = "zh"
SUPPORTED_LANGUAGES = ("zh", "en")

APP_NAME = {
    "en": "Live Well",
    "zh": "活着么",
}

UNIT_LABELS = {
    "en": {"minutes": "minutes", "hours": "hours", "days": "days"},
    "zh": {"minutes": "分钟", "hours": "小时", "days": "天"},
}


@dataclass(frozen=True)
class RenderedNotification:
    subject: str
    body: str


def normalize_language(language) -> str:
    """Unknown or missing languages fall back to Chinese."""
    if language in SUPPORTED_LANGUAGES:
        return language
    return DEFAULT_LANGUAGE


def unit_label(language: str, unit: str) -> str:
    labels = UNIT_LABELS[normalize_language(language)]
    if unit not in labels:
        raise ValueError(f"Unknown missed-time unit: {unit}")
    return labels[unit]


def _render_en(name: str, missed: str) -> RenderedNotification:
    app = APP_NAME["en"]
    subject = f"[Safety Alert] Please check on {name} now"
    body = "\n".join([
        "Dear Guardian,",
        "",
        f"You are receiving this email because {name}, who listed you as an "
        f"emergency contact in the {app} app, has not completed the daily safety "
        f"check-in for {missed}.",
        "",
        f"To help make sure {name} is safe, please try to reach them as soon as possible:",
        "",
        f"1. Call {name} on a number you know they use.",
        f"2. Ask family, friends, neighbours or colleagues who live near {name} to check in person.",
        "3. If you cannot reach them and believe they may be at risk, contact local "
        "community services or the police.",
        "",
        "Please note:",
        "",
        f"1. This email was triggered automatically. It is a safety reminder only and "
        f"does not mean {name} is in danger; they may simply have forgotten to check in.",
        f"2. Once you know {name} is safe, remind them to open the app and check in. "
        "That stops further alerts for this missed period.",
        f"3. Guardian details and alert settings can be changed by {name} in the app.",
        "",
        "Thank you for looking out for them.",
        "",
        f"The {app} Team",
        "",
        "(This is an automated message. Please do not reply.)",
    ])
    return RenderedNotification(subject=subject, body=body)


def _render_zh(name: str, missed: str) -> RenderedNotification:
    app = APP_NAME["zh"]
    subject = f"【安全预警】请立即确认{name}的安全状态"
    body = "\n".join([
        "尊敬的紧急联系人：",
        "",
        "您好！",
        "",
        f"您收到这封邮件，是因为将您设为紧急联系人的 {name} 已连续 {missed} "
        f"未在【{app}】App完成每日平安签到。",
        "",
        f"为保障{name}的人身安全，请您尽快通过以下方式尝试联系TA：",
        "",
        f"1. 拨打{name}的常用电话；",
        f"2. 联系{name}的同住亲友、邻居或同事协助当面确认；",
        "3. 若多次联系无果且您判断存在安全风险，请及时联系当地社区、物业或报警处理。",
        "",
        "重要说明：",
        "",
        f"1. 此邮件由系统自动发送，仅作为安全提醒，不代表{name}已发生危险，也可能是TA忘记签到；",
        f"2. 确认{name}安全后，请提醒TA登录App完成签到，本次失联周期内将不再重复预警；",
        f"3. 紧急联系人信息与预警规则可由{name}在App内修改。",
        "",
        "感谢您的配合。",
        "",
        f"——【{app}】团队",
        "",
        "（此邮件为系统自动发送，无需回复）",
    ])
    return RenderedNotification(subject=subject, body=body)


_RENDERERS = {
    "en": _render_en,
    "zh": _render_zh,
}


def render_alert(subject_name: str, language, missed_units: int, unit: str) -> RenderedNotification:
    """
    Render the overdue alert for one subject.

    Args:
        subject_name: Display name of the monitored subject
        language: 'zh' or 'en'; anything else renders Chinese
        missed_units: Whole units elapsed since the last check-in
        unit: 'minutes', 'hours' or 'days'
    """
    lang = normalize_language(language)
    name = (subject_name or "").strip() or ("your contact" if lang == "en" else "您的联系人")
    missed = f"{missed_units} {unit_label(lang, unit)}"
    return _RENDERERS[lang](name, missed)


def render_connectivity_check(language=DEFAULT_LANGUAGE) -> RenderedNotification:
    """Fixed message used to verify the delivery path end to end."""
    lang = normalize_language(language)
    if lang == "en":
        return RenderedNotification(
            subject=f"[{APP_NAME['en']}] Delivery connectivity check",
            body=(
                "This is a test message from the alert service.\n\n"
                "If you can read it, guardian notifications are being delivered. "
                "No action is needed."
            ),
        )
    return RenderedNotification(
        subject=f"【{APP_NAME['zh']}】预警邮件连通性测试",
        body=(
            "这是一封来自预警服务的测试邮件。\n\n"
            "如果您能看到这封邮件，说明紧急联系人通知可以正常送达，无需任何操作。"
        ),
    )
