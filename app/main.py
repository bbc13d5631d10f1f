import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import logging
from datetime import datetime, date, time as dtime
from decimal import Decimal
from uuid import uuid4

import pandas as pd
import plotly.express as px
import streamlit as st

from engine.calendar import month_key
from engine.config import EngineConfig
from engine.domain import Frequency, Goal, RecurringRule, Transaction
from engine.events import LEDGER_MUTATIONS
from engine.goals import goal_progress
from engine.ledger import InMemoryLedger
from engine.notifications import RecordingGateway
from engine.services import EventEngine

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.set_page_config(page_title="Finance Manager", layout="wide")

SEED_PATH = "data/seed.json"


def bootstrap():
    ledger = InMemoryLedger()
    if os.path.exists(SEED_PATH):
        ledger.load_seed(SEED_PATH)
    gateway = RecordingGateway()
    engine = EventEngine(ledger, gateway, EngineConfig.from_env())

    # every ledger mutation triggers a pass with the toggles currently in the sidebar
    def on_mutation(event, payload):
        return engine.run_evaluation_pass(datetime.now(), config=st.session_state.get("engine_config"))

    ledger.bus.subscribe_many(LEDGER_MUTATIONS, on_mutation)
    return ledger, gateway, engine


if "ledger" not in st.session_state:
    st.session_state.ledger, st.session_state.gateway, st.session_state.engine = bootstrap()

ledger: InMemoryLedger = st.session_state.ledger
gateway: RecordingGateway = st.session_state.gateway
engine: EventEngine = st.session_state.engine

st.sidebar.markdown("### 🔔 Notifications")
st.session_state.engine_config = engine.config.with_toggles(
    budget_alerts_enabled=st.sidebar.toggle("Budget alerts", value=engine.config.budget_alerts_enabled),
    goal_reminders_enabled=st.sidebar.toggle("Goal reminders", value=engine.config.goal_reminders_enabled),
    spending_alerts_enabled=st.sidebar.toggle("Spending alerts", value=engine.config.spending_alerts_enabled),
    weekly_reports_enabled=st.sidebar.toggle("Weekly reports", value=engine.config.weekly_reports_enabled),
)
gateway.authorized = st.sidebar.checkbox("Notifications authorized", value=gateway.authorized)

if st.sidebar.button("▶ Run evaluation pass"):
    sent = engine.run_evaluation_pass(datetime.now(), config=st.session_state.engine_config)
    st.sidebar.success(f"{len(sent)} new alert(s)")

menu = st.sidebar.radio("Menu", ["🧾 Transactions", "💰 Budgets", "🎯 Goals", "🔁 Recurring", "🔔 Alerts"])


def tx_to_df(tx_list):
    rows = [
        {
            "id": t.id,
            "date": t.date,
            "amount": float(t.amount) * (-1 if t.is_expense else 1),
            "category": t.category,
            "note": t.note or "",
            "recurring": bool(t.recurring_id),
        }
        for t in tx_list
    ]
    return pd.DataFrame(rows, columns=["id", "date", "amount", "category", "note", "recurring"])


if menu == "🧾 Transactions":
    st.title("🧾 Transactions")
    with st.form("add_tx"):
        c1, c2, c3 = st.columns(3)
        amount = c1.number_input("Amount", min_value=0.0, step=1.0)
        category = c2.text_input("Category", value="Food")
        is_expense = c3.checkbox("Expense", value=True)
        note = st.text_input("Note")
        if st.form_submit_button("Add"):
            ledger.add_transaction(Transaction(
                id=str(uuid4()),
                amount=Decimal(str(amount)),
                is_expense=is_expense,
                category=category.strip(),
                date=datetime.now(),
                note=note or None,
            ))
            st.success("Transaction added")

    df = tx_to_df(ledger.transactions)
    st.dataframe(df.sort_values("date", ascending=False), use_container_width=True)

    if not df.empty:
        picked = st.selectbox("Transaction", df["id"].tolist())
        d1, d2 = st.columns(2)
        if d1.button("Duplicate"):
            ledger.duplicate_transaction(picked)
            st.rerun()
        if d2.button("Delete"):
            ledger.delete_transaction(picked)
            st.rerun()

elif menu == "💰 Budgets":
    st.title("💰 Budgets")
    current = month_key(datetime.now())
    with st.form("save_budget"):
        category = st.text_input("Category")
        limit = st.number_input("Monthly limit", min_value=1.0, step=10.0)
        if st.form_submit_button("Save") and category.strip():
            ledger.save_budget(category.strip(), Decimal(str(limit)), current)

    rows = []
    for b in ledger.query_budgets(current):
        spent = engine.aggregator.spent_amount(b.category_name, b.month)
        rows.append({"category": b.category_name, "limit": float(b.monthly_limit), "spent": float(spent),
                     "used %": round(float(spent / b.monthly_limit) * 100, 1)})
    if rows:
        usage = pd.DataFrame(rows)
        st.table(usage)
        fig = px.bar(usage, x="category", y=["spent", "limit"], barmode="group",
                     title=f"Budget usage {current}", template="plotly_dark")
        st.plotly_chart(fig, use_container_width=True)
    else:
        st.info("No budgets for this month.")

elif menu == "🎯 Goals":
    st.title("🎯 Goals")
    with st.form("save_goal"):
        name = st.text_input("Name")
        target = st.number_input("Target amount", min_value=1.0, step=50.0)
        saved = st.number_input("Saved so far", min_value=0.0, step=50.0)
        deadline = st.date_input("Target date", value=date.today())
        if st.form_submit_button("Save") and name.strip():
            ledger.save_goal(Goal(
                id=str(uuid4()),
                name=name.strip(),
                target_amount=Decimal(str(target)),
                current_amount=Decimal(str(saved)),
                category="Savings",
                created_date=datetime.now(),
                target_date=datetime.combine(deadline, dtime()),
            ))

    for g in ledger.goals:
        st.write(f"**{g.name}**: {g.current_amount} / {g.target_amount}")
        st.progress(goal_progress(g))

elif menu == "🔁 Recurring":
    st.title("🔁 Recurring transactions")
    with st.form("add_rule"):
        c1, c2, c3 = st.columns(3)
        amount = c1.number_input("Amount", min_value=0.0, step=10.0)
        category = c2.text_input("Category", value="Rent")
        frequency = c3.selectbox("Frequency", [f.value for f in Frequency], index=2)
        first = st.date_input("Next date", value=date.today())
        if st.form_submit_button("Add rule"):
            ledger.add_recurring_rule(RecurringRule(
                id=str(uuid4()),
                amount=Decimal(str(amount)),
                category=category.strip(),
                is_expense=True,
                frequency=Frequency.parse(frequency),
                next_date=datetime.combine(first, dtime()),
            ))

    for r in ledger.recurring_rules:
        if not r.is_active:
            continue
        c1, c2 = st.columns([4, 1])
        c1.write(f"{r.category}: {r.amount} ({r.frequency.value}), next {r.next_date:%Y-%m-%d}")
        if c2.button("Stop", key=f"stop-{r.id}"):
            ledger.deactivate_recurring_rule(r.id)
            st.rerun()

elif menu == "🔔 Alerts":
    st.title("🔔 Alerts")
    pending = pd.DataFrame(
        [{"identifier": i.identifier, "kind": i.kind.value, "title": i.title, "body": i.body}
         for i in gateway.pending.values()],
        columns=["identifier", "kind", "title", "body"],
    )
    st.subheader("Pending")
    st.table(pending)
    st.subheader("Delivered history")
    st.caption(f"{len(gateway.delivered)} alert(s) delivered")
    for i in reversed(gateway.delivered[-20:]):
        st.write(f"{i.title}: {i.body}")
