"""Startup Survivor (Streamlit)

UI/Experience layer.

Principles:
- UI only renders + triggers.
- Core domain and engine are pure Python modules; every rule lives there.
- Content comes from the bundled JSON tables (content/data).

Entry point for Streamlit Cloud: app.py
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

import streamlit as st

from content.repository import ContentRepository, default_repository
from core.goals import goal_progress_text, progress_percent
from core.modes import DIFFICULTIES, get_difficulty
from core.progression import level_progress
from core.rng import rng_from, stable_int_seed
from core.state import Company, active_loans, company_to_dict
from engine.boss import BossBattle, battle_from_mapping, execute_boss_action, expire_battle, player_health
from engine.config import EngineConfig
from engine.loans import (
    accept_loan,
    calculate_credibility_score,
    calculate_monthly_payment,
    generate_loan_offers,
    make_payment,
)
from engine.logging import day_log_entry, dumps_run_export, loads_run_export, make_run_export
from engine.modifiers import active_broadcast, broadcast_days_remaining
from engine.pipeline import create_company, end_day, make_choice, perform_action, start_day
from engine.skills import auto_allocate, upgrade_skill

APP_TITLE = "Startup Survivor"
APP_SUBTITLE = "Day-by-day startup simulation: actions, events, anomalies, loans and a boss at the checkpoint."
APP_VERSION = "1.0.0"

st.set_page_config(page_title=APP_TITLE, page_icon="🚀", layout="wide", initial_sidebar_state="expanded")

CSS = """
<style>
.block-container {padding-top: 3.2rem; padding-bottom: 2rem;}
section[data-testid="stSidebar"] .block-container {padding-top: 2.0rem;}
.card {
  border: 1px solid rgba(255,255,255,0.08);
  border-radius: 16px;
  padding: 14px 16px;
  background: rgba(255,255,255,0.03);
}
.pill {
  display: inline-block;
  padding: 2px 10px;
  border-radius: 999px;
  border: 1px solid rgba(255,255,255,0.12);
  font-size: 12px;
  opacity: .85;
}
.pill.warn {border-color: rgba(255,190,90,0.35);}
.pill.ok {border-color: rgba(120,255,160,0.25);}
.pill.bad {border-color: rgba(255,120,120,0.25);}
hr.soft {border: none; border-top: 1px solid rgba(255,255,255,0.08); margin: 1rem 0;}
.small {font-size: 13px; opacity:.75;}
</style>
"""

st.markdown(CSS, unsafe_allow_html=True)


@st.cache_resource
def _content() -> ContentRepository:
    return default_repository()


def _now_id() -> str:
    return datetime.now().strftime("%Y%m%d-%H%M%S")


def _effects_summary(effects: Dict[str, Any]) -> str:
    parts: List[str] = []
    for key in ("cash", "users", "quality", "hype", "virality", "xp"):
        v = effects.get(key)
        if v is None or abs(float(v)) < 1e-9:
            continue
        parts.append(f"{key} {'+' if float(v) > 0 else ''}{float(v):,.0f}")
    for sid, lvl in dict(effects.get("skills") or {}).items():
        parts.append(f"{sid} +{lvl}")
    return " · ".join(parts) if parts else "no change"


# =========================
# Session State
# =========================


def _ensure_state() -> None:
    ss = st.session_state
    if "run_id" not in ss:
        ss.run_id = _now_id()
    if "started" not in ss:
        ss.started = False
    if "company_name" not in ss:
        ss.company_name = ""
    if "difficulty" not in ss:
        ss.difficulty = "normal"
    if "role" not in ss:
        ss.role = None
    if "base_seed" not in ss:
        ss.base_seed = 42

    if "engine_config" not in ss:
        ss.engine_config = None
    if "company" not in ss:
        ss.company = None
    if "initial_company" not in ss:
        ss.initial_company = None
    if "battle" not in ss:
        ss.battle = None

    if "day_start" not in ss:
        ss.day_start = None
    if "day_steps" not in ss:
        ss.day_steps = []
    if "logs" not in ss:
        ss.logs = []
    if "messages" not in ss:
        ss.messages = []


def _reset_run() -> None:
    ss = st.session_state
    keep = {"company_name": ss.get("company_name", "")}
    for k in list(ss.keys()):
        del ss[k]
    for k, v in keep.items():
        ss[k] = v
    _ensure_state()


def _start_run() -> None:
    ss = st.session_state
    name = str(ss.company_name or "").strip() or "Untitled Startup"
    cfg = EngineConfig(base_seed=int(ss.base_seed), difficulty=str(ss.difficulty))
    company_id = f"run-{stable_int_seed(name, ss.run_id) % 1_000_000:06d}"
    company = create_company(cfg, company_id=company_id, name=name, content=_content(), role=ss.role)

    ss.engine_config = cfg
    ss.company = company
    ss.initial_company = company
    ss.battle = None
    ss.day_start = None
    ss.day_steps = []
    ss.logs = []
    ss.messages = []
    ss.started = True


def _say(text: str) -> None:
    st.session_state.messages.append(text)


def _step(kind: str, **payload: Any) -> None:
    st.session_state.day_steps.append({"type": kind, **payload})


# =========================
# Callbacks
# =========================


def _on_start_day() -> None:
    ss = st.session_state
    started = start_day(ss.company, _content(), ss.engine_config, ss.battle)
    if not started.ok:
        _say(f"⚠️ {started.rejection.message}")
        return
    ss.company = started.company
    if started.battle is not None:
        ss.battle = started.battle
    ss.day_start = started.to_log()
    ss.day_steps = []
    for act in started.activations:
        _say(f"⚡ Anomaly: **{act.anomaly.name}**. {act.anomaly.description}")
    if started.broadcast is not None:
        _say(f"📡 Broadcast started: **{started.broadcast.name}**")
    if started.battle is not None and started.battle.active:
        _say(f"👹 **{started.battle.boss_name}** is here. Fight it below.")


def _on_action(action_id: str) -> None:
    ss = st.session_state
    result = perform_action(ss.company, action_id, _content(), ss.engine_config)
    if not result.ok:
        _say(f"⚠️ {result.rejection.message}")
        return
    ss.company = result.company
    _step("action", action_id=action_id, events=[e.event_id for e in result.events])


def _on_choice(event_id: str, choice_id: str) -> None:
    ss = st.session_state
    result = make_choice(ss.company, event_id, choice_id, _content(), ss.engine_config)
    if not result.ok:
        _say(f"⚠️ {result.rejection.message}")
        return
    ss.company = result.company
    _say(f"**{result.event.name}**: {result.choice.text} ({_effects_summary(result.choice.effects.to_dict())})")
    if result.level_up is not None:
        lu = result.level_up
        _say(f"🎉 Level up! {lu.old_level} → {lu.new_level} (+{lu.skill_points_gained} skill points)")
    _step("choice", event_id=event_id, choice_id=choice_id, outcome=result.choice.outcome)


def _on_end_day() -> None:
    ss = st.session_state
    ended = end_day(ss.company, _content(), ss.engine_config)
    if not ended.ok:
        _say(f"⚠️ {ended.rejection.message}")
        return
    ss.logs.append(day_log_entry(start=ss.day_start or {"day": ended.to_log()["day"]}, steps=ss.day_steps, end=ended.to_log()))
    ss.company = ended.company
    ss.day_start = None
    ss.day_steps = []
    rep = ended.report
    if rep is not None:
        _say(
            f"📅 Day {rep.day} closed: revenue ${rep.revenue:,.0f}, burn ${rep.burn:,.0f}, "
            f"churned {rep.churned}, viral {'yes' if rep.viral.triggered else 'no'}"
        )
        for gid in rep.goals_completed:
            _say(f"🏆 Goal completed: {gid}")


def _on_upgrade(skill_id: str) -> None:
    ss = st.session_state
    company, rejection = upgrade_skill(ss.company, skill_id, _content())
    if rejection is not None:
        _say(f"⚠️ {rejection.message}")
        return
    ss.company = company
    _step("skill", skill_id=skill_id)


def _on_auto_allocate() -> None:
    ss = st.session_state
    rng = rng_from(
        "auto-allocate", ss.company.company_id, ss.company.day, ss.company.skill_points_spent,
        base_seed=int(ss.engine_config.base_seed),
    )
    company, upgrades = auto_allocate(ss.company, _content(), rng)
    ss.company = company
    for u in upgrades:
        _say(f"🧠 {u}")
    _step("auto_allocate", upgrades=list(upgrades))


def _on_accept_loan(offer_index: int) -> None:
    ss = st.session_state
    offers = generate_loan_offers(calculate_credibility_score(ss.company))
    result = accept_loan(ss.company, offers[offer_index])
    if not result.ok:
        _say(f"⚠️ {result.rejection.message}")
        return
    ss.company = result.company
    _say(f"🏦 Loan accepted: ${result.loan.amount:,.0f}, due day {result.loan.due_day}")
    _step("loan_accepted", loan_id=result.loan.loan_id, offer_id=offers[offer_index].offer_id)


def _on_pay_loan(loan_id: str, amount: float) -> None:
    ss = st.session_state
    result = make_payment(ss.company, loan_id, amount)
    if not result.ok:
        _say(f"⚠️ {result.rejection.message}")
        return
    ss.company = result.company
    msg = f"💸 Paid ${result.paid:,.0f}"
    if result.fully_paid:
        msg += f". Loan closed (+{result.credibility_bonus} credibility)"
    _say(msg)
    _step("loan_payment", loan_id=loan_id, paid=result.paid)


def _on_boss(move_type: str, cost: Optional[Dict[str, int]] = None) -> None:
    ss = st.session_state
    turn = execute_boss_action(ss.company, ss.battle, move_type, _content(), cost)
    if not turn.ok:
        _say(f"⚠️ {turn.rejection.message}")
        return
    ss.company = turn.company
    ss.battle = turn.battle
    _say(turn.message)
    _step("boss", move=move_type, damage_dealt=turn.damage_dealt, damage_taken=turn.damage_taken)


def _on_retreat() -> None:
    ss = st.session_state
    ss.battle = expire_battle(ss.battle)
    _say("🏳️ You walked away from the fight. The boss will not come back.")
    _step("boss", move="retreat")


# =========================
# UI Pages
# =========================


def page_setup() -> None:
    st.title(APP_TITLE)
    st.caption(APP_SUBTITLE)

    st.markdown("""
    ### How to play
    - **Start the day** to roll today's actions (and maybe an anomaly).
    - Take actions; each spawns 1-3 events. Resolving an event costs an action point.
    - **End the day** to run the economy: revenue, burn, churn, viral growth, loans.
    - Survive to the last day. A boss shows up at the checkpoint.
    """)

    st.markdown("#### Difficulties")
    for key, d in DIFFICULTIES.items():
        st.markdown(f"- **{d.label}**: {d.desc} (start cash ${d.initial_cash:,.0f}, {d.action_limit} actions/day)")


def _render_metrics(company: Company, cfg: EngineConfig) -> None:
    a, b, c, d, e, f = st.columns(6)
    a.metric("Day", f"{company.day}/{cfg.max_day}")
    b.metric("Cash", f"${company.cash:,.0f}")
    c.metric("Users", f"{company.users:,}")
    d.metric("Quality", f"{company.quality:.0f}/100")
    e.metric("Hype", f"{company.hype:.0f}/100")
    f.metric("Virality", f"{company.virality:.1f}/100")

    lp = level_progress(company.xp)
    st.progress(min(1.0, lp.progress_percent / 100.0), text=f"Level {lp.level} · {company.xp:,} XP · {company.skill_points} skill points")


def _render_goals(company: Company) -> None:
    with st.expander("🎯 Goals", expanded=False):
        for g in company.goals:
            mark = "✅" if g.completed else "⬜"
            st.markdown(f"{mark} {g.description}: {goal_progress_text(g)}")
            st.progress(progress_percent(g) / 100.0)


def _render_day(company: Company) -> None:
    ss = st.session_state
    content = _content()
    cfg: EngineConfig = ss.engine_config

    bc = active_broadcast(company, content, cfg.broadcast_duration)
    if bc is not None:
        st.info(f"📡 {bc.name}: {bc.description} ({broadcast_days_remaining(company, cfg.broadcast_duration)} days left)")

    if not company.daily_actions:
        st.button("☀️ Start day", on_click=_on_start_day, use_container_width=True, type="primary")
        return

    st.markdown(f"### Day {company.day} · {company.action_points} action points left")
    if company.day_modifiers.locked_categories:
        st.warning("Locked today: " + ", ".join(company.day_modifiers.locked_categories))

    if company.pending_events:
        st.markdown("#### Pending events")
        for ev in company.pending_events:
            st.markdown("<div class='card'>", unsafe_allow_html=True)
            tag = "<span class='pill ok'>free</span> " if ev.is_special else ""
            st.markdown(f"{tag}**{ev.name}** <span class='pill'>{ev.category}</span>", unsafe_allow_html=True)
            st.markdown(ev.description)
            cols = st.columns(len(ev.choices))
            for col, ch in zip(cols, ev.choices):
                with col:
                    st.markdown(f"**{ch.label}**")
                    st.caption(ch.text)
                    st.button(
                        "Choose",
                        key=f"choose_{company.day}_{ev.event_id}_{ch.choice_id}",
                        on_click=_on_choice,
                        args=(ev.event_id, ch.choice_id),
                        use_container_width=True,
                    )
            st.markdown("</div>", unsafe_allow_html=True)
    else:
        st.markdown("#### Today's actions")
        cols = st.columns(2)
        for ix, act in enumerate(company.daily_actions):
            with cols[ix % 2]:
                locked = act.category in company.day_modifiers.locked_categories
                pill = "bad" if locked else ("ok" if not act.selected else "warn")
                st.markdown(
                    f"**{act.name}** <span class='pill {pill}'>{act.category}</span> <span class='pill'>weight {act.weight}</span>",
                    unsafe_allow_html=True,
                )
                st.caption(act.description)
                st.button(
                    "Done" if act.selected else "Take action",
                    key=f"act_{company.day}_{act.action_id}",
                    on_click=_on_action,
                    args=(act.action_id,),
                    disabled=act.selected or locked,
                    use_container_width=True,
                )

    st.markdown("<hr class='soft'/>", unsafe_allow_html=True)
    st.button("🌙 End day", on_click=_on_end_day, use_container_width=True)


def _render_boss(company: Company) -> None:
    ss = st.session_state
    battle: Optional[BossBattle] = ss.battle
    if battle is None or not battle.active:
        return

    st.markdown("<div class='card'>", unsafe_allow_html=True)
    st.markdown(f"### 👹 {battle.boss_name} · turn {battle.current_turn}")
    st.progress(max(0.0, battle.boss_health / float(battle.max_health)), text=f"Boss HP {battle.boss_health}/{battle.max_health}")
    st.caption(f"Your strength: {player_health(company)}")
    a, b, c, d, e = st.columns(5)
    a.button("⚔️ Attack ($500)", on_click=_on_boss, args=("attack",), use_container_width=True)
    b.button("🛡️ Defend ($300)", on_click=_on_boss, args=("defend",), use_container_width=True)
    c.button("✨ Special (200 XP)", on_click=_on_boss, args=("special", {"xp": 200}), use_container_width=True)
    d.button("💰 Special ($5,000)", on_click=_on_boss, args=("special", {"cash": 5000}), use_container_width=True)
    e.button("🏳️ Retreat", on_click=_on_retreat, use_container_width=True)
    st.markdown("</div>", unsafe_allow_html=True)


def _render_skills(company: Company) -> None:
    content = _content()
    with st.expander(f"🧠 Skills ({company.skill_points} points)", expanded=False):
        st.button("Auto-allocate", on_click=_on_auto_allocate, disabled=company.skill_points <= 0)
        for skill in sorted(content.skills.values(), key=lambda s: (s.tree, s.skill_id)):
            lvl = int(company.skills.get(skill.skill_id, 0))
            c1, c2 = st.columns([3, 1])
            c1.markdown(f"**{skill.name}** <span class='pill'>{skill.tree}</span> {lvl}/{skill.max_level}", unsafe_allow_html=True)
            c1.caption(skill.description)
            c2.button(
                "Upgrade",
                key=f"up_{skill.skill_id}",
                on_click=_on_upgrade,
                args=(skill.skill_id,),
                disabled=company.skill_points <= 0 or lvl >= skill.max_level,
            )


def _render_loans(company: Company) -> None:
    with st.expander("🏦 Loans", expanded=False):
        loans = active_loans(company)
        if loans:
            for ln in loans:
                st.markdown(
                    f"**{ln.loan_id}**: remaining ${ln.remaining:,.0f} of ${ln.total_owed:,.0f}, due day {ln.due_day}, "
                    f"credibility {ln.credibility_score}"
                )
                due = calculate_monthly_payment(ln)
                c1, c2 = st.columns(2)
                c1.button(f"Pay ${due:,.0f}", key=f"pay_{ln.loan_id}", on_click=_on_pay_loan, args=(ln.loan_id, due))
                c2.button("Pay off", key=f"payoff_{ln.loan_id}", on_click=_on_pay_loan, args=(ln.loan_id, ln.remaining))
            return

        score = calculate_credibility_score(company)
        st.caption(f"Credibility score: {score}/100")
        for ix, offer in enumerate(generate_loan_offers(score)):
            s = offer.sacrifice
            terms = [f"-{s.xp_penalty_percent:.0f}% XP"]
            if s.revenue_multiplier is not None:
                terms.append(f"revenue ×{s.revenue_multiplier:.2f}")
            if s.future_event_chance_increase:
                terms.append(f"anomaly chance +{s.future_event_chance_increase:.0%}")
            c1, c2 = st.columns([3, 1])
            c1.markdown(
                f"**${offer.amount:,.0f}** at {offer.interest_rate:.0%} for {offer.duration_days} days · " + ", ".join(terms)
            )
            c2.button("Accept", key=f"offer_{offer.offer_id}", on_click=_on_accept_loan, args=(ix,))


def page_run() -> None:
    ss = st.session_state
    cfg: EngineConfig = ss.engine_config
    company: Company = ss.company

    st.title(f"{APP_TITLE}: {company.name}")
    st.caption(f"{get_difficulty(company.difficulty).label} · role: {company.role or 'none'}")

    _render_metrics(company, cfg)
    _render_goals(company)
    st.markdown("<hr class='soft'/>", unsafe_allow_html=True)

    for msg in ss.messages[-8:]:
        st.markdown(msg)
    ss.messages = []

    if not company.alive:
        if company.outcome == "bankrupt":
            st.error(f"💀 {company.name} went bankrupt on day {company.day}.")
        elif company.outcome == "boss_defeated":
            st.success("🏆 Boss defeated and the campaign survived. Legendary run!")
        else:
            st.success("🏁 Campaign over. You survived!")
        return

    _render_boss(company)
    _render_day(company)

    st.markdown("<hr class='soft'/>", unsafe_allow_html=True)
    _render_skills(company)
    _render_loans(company)


def page_history() -> None:
    ss = st.session_state
    company: Company = ss.company
    st.title("History")
    st.caption("Daily snapshots and day logs for this run.")

    if company.stats_history:
        st.line_chart(
            {
                "cash": [s.cash for s in company.stats_history],
                "users": [s.users for s in company.stats_history],
            }
        )
        st.line_chart(
            {
                "quality": [s.quality for s in company.stats_history],
                "hype": [s.hype for s in company.stats_history],
                "virality": [s.virality for s in company.stats_history],
            }
        )

    if company.anomaly_log:
        st.subheader("Anomalies")
        for entry in company.anomaly_log:
            st.markdown(f"- Day {entry.day}: `{entry.anomaly_id}` ({_effects_summary(entry.effects)})")

    if not ss.logs:
        st.info("No days closed yet.")
        return

    for item in reversed(ss.logs):
        tick = (item.get("end") or {}).get("tick") or {}
        st.markdown("<div class='card'>", unsafe_allow_html=True)
        st.markdown(f"#### Day {item.get('day')}: revenue ${tick.get('revenue', 0):,.0f} / burn ${tick.get('burn', 0):,.0f}")
        st.json(item, expanded=False)
        st.markdown("</div>", unsafe_allow_html=True)
        st.write("")


def page_debug() -> None:
    ss = st.session_state
    st.title("Debug")

    st.subheader("EngineConfig")
    st.json(ss.engine_config.to_dict() if ss.engine_config else {})

    st.subheader("Company")
    st.json(company_to_dict(ss.company) if ss.company else {})

    st.subheader("Boss battle")
    st.json(ss.battle.to_dict() if ss.battle else {})


def export_import_controls() -> None:
    ss = st.session_state
    st.sidebar.markdown("---")
    st.sidebar.markdown("### Run Export / Import")

    if ss.get("started") and ss.get("company") is not None:
        export_payload = make_run_export(
            seed=int(ss.engine_config.base_seed),
            config=ss.engine_config.to_dict(),
            initial_company=ss.initial_company,
            day_logs=list(ss.logs),
            final_company=ss.company,
        )
        export_payload["meta"] = {"app": APP_TITLE, "version": APP_VERSION, "exported_at": datetime.now().isoformat()}
        if ss.battle is not None:
            export_payload["battle"] = ss.battle.to_dict()
        st.sidebar.download_button(
            "Download run",
            data=dumps_run_export(export_payload).encode("utf-8"),
            file_name=f"startup_survivor_run_{ss.get('run_id', 'run')}.json",
            mime="application/json",
        )

    up = st.sidebar.file_uploader("Load run file", type=["json"], accept_multiple_files=False)
    if up is not None and st.sidebar.button("Import run"):
        try:
            data, company = loads_run_export(up.read().decode("utf-8"))
            ss.engine_config = EngineConfig(**dict(data.get("config") or {}))
            ss.initial_company = company
            ss.company = company
            ss.battle = battle_from_mapping(data["battle"]) if data.get("battle") else None
            ss.logs = list(data.get("day_logs") or [])
            ss.day_start = None
            ss.day_steps = []
            ss.started = True
            st.sidebar.success("Run loaded.")
            st.rerun()
        except (ValueError, KeyError, TypeError) as e:
            st.sidebar.error(f"Import failed: {e}")


# =========================
# Sidebar
# =========================


def sidebar() -> str:
    ss = st.session_state
    content = _content()

    st.sidebar.markdown(f"**{APP_TITLE}**  ")
    st.sidebar.markdown(f"v{APP_VERSION}")
    st.sidebar.markdown("---")

    ss.company_name = st.sidebar.text_input("Company name", value=str(ss.get("company_name", "")), disabled=ss.started)

    keys = list(DIFFICULTIES.keys())
    ix = keys.index(ss.difficulty) if ss.difficulty in keys else 1
    ss.difficulty = st.sidebar.selectbox(
        "Difficulty", keys, index=ix, format_func=lambda k: DIFFICULTIES[k].label, disabled=ss.started
    )
    st.sidebar.caption(get_difficulty(ss.difficulty).desc)

    role_keys: List[Optional[str]] = [None, *sorted(content.roles.keys())]
    role_ix = role_keys.index(ss.role) if ss.role in role_keys else 0
    ss.role = st.sidebar.selectbox(
        "Role",
        role_keys,
        index=role_ix,
        format_func=lambda k: "No role" if k is None else content.roles[k].name,
        disabled=ss.started,
    )
    if ss.role is not None:
        st.sidebar.caption(content.roles[ss.role].description)

    ss.base_seed = st.sidebar.number_input("Seed (deterministic run)", value=int(ss.base_seed), step=1, disabled=ss.started)

    cols = st.sidebar.columns(2)
    with cols[0]:
        if st.button("Start run", disabled=ss.started, use_container_width=True):
            _start_run()
            st.rerun()
    with cols[1]:
        if st.button("Reset", use_container_width=True):
            _reset_run()
            st.rerun()

    export_import_controls()

    st.sidebar.markdown("---")
    page = st.sidebar.radio("Page", ["Play", "History", "Debug"], index=0)
    return page


# =========================
# Main
# =========================


def main() -> None:
    _ensure_state()
    page = sidebar()

    ss = st.session_state

    if not ss.started:
        page_setup()
        return

    if ss.engine_config is None or ss.company is None:
        st.error("Run config/state missing. Press Reset.")
        return

    if page == "Play":
        page_run()
    elif page == "History":
        page_history()
    else:
        page_debug()


if __name__ == "__main__":
    main()
