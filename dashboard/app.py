"""Streamlit operator dashboard for the ER queue forecasting service."""

from __future__ import annotations

import os
from typing import Any, Dict, Optional

import pandas as pd
import requests
import streamlit as st

# ==========================================
# Configuration & Constants
# ==========================================
# Point this to your local FastAPI server
API_BASE_URL = os.getenv("QUEUE_API_URL", "http://127.0.0.1:8000")

SCENARIOS = ["normal", "high_volume", "emergency", "staff_shortage"]

st.set_page_config(
    page_title="ER Queue Dashboard",
    page_icon="🏥",
    layout="wide",
)


# ==========================================
# API Helper Functions
# ==========================================
def api_get(path: str, params: Optional[Dict[str, Any]] = None, timeout: float = 10) -> Optional[Any]:
    try:
        response = requests.get(f"{API_BASE_URL}{path}", params=params, timeout=timeout)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        st.error(f"Request to {path} failed: {e}")
        return None


def api_post(path: str, payload: Optional[Dict[str, Any]] = None, timeout: float = 10) -> Optional[Any]:
    try:
        response = requests.post(f"{API_BASE_URL}{path}", json=payload, timeout=timeout)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as e:
        st.error(f"Request to {path} failed: {e}")
        return None


def forecast_frame(points: list[Dict[str, Any]]) -> pd.DataFrame:
    frame = pd.DataFrame(
        {
            "timestamp": [point["timestamp"] for point in points],
            "forecast": [point["forecasted_value"] for point in points],
            "lower": [(point.get("confidence_interval") or {}).get("lower") for point in points],
            "upper": [(point.get("confidence_interval") or {}).get("upper") for point in points],
        }
    )
    frame["timestamp"] = pd.to_datetime(frame["timestamp"])
    return frame.set_index("timestamp")


def render_insights(insights: list[Dict[str, Any]]) -> None:
    if not insights:
        st.info("No insights for the current forecast window.")
        return
    for insight in insights:
        message = f"**{insight['type']}**: {insight['description']}"
        if insight.get("recommended_action"):
            message += f"  \n_{insight['recommended_action']}_"
        if insight["severity"] == "critical":
            st.error(message)
        elif insight["severity"] == "warning":
            st.warning(message)
        else:
            st.info(message)


# ==========================================
# UI Page Functions
# ==========================================
def render_overview_page() -> None:
    st.header("📋 Queue Overview")

    overview = api_get("/api/dashboard/overview")
    if not overview:
        return

    queue_status = overview.get("queue_status")
    key_metrics = overview.get("key_metrics", {})
    health = overview.get("system_health", {})

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Patients", queue_status["total_patients"] if queue_status else "n/a")
    col2.metric("Avg Wait (min)", round(queue_status["average_wait_time"]) if queue_status else "n/a")
    col3.metric("Peak Today", key_metrics.get("total_patients_today", 0))
    col4.metric("Sensor Uptime", f"{key_metrics.get('system_uptime', 0)}%")

    st.caption(f"Data quality: {health.get('data_quality', 'unknown')}")

    alerts = overview.get("recent_alerts", [])
    if alerts:
        st.write("### Alerts")
        st.dataframe(pd.DataFrame(alerts), use_container_width=True)

    history = api_get("/api/queue/history/24")
    if history:
        frame = pd.DataFrame(history)
        frame["timestamp"] = pd.to_datetime(frame["timestamp"])
        st.write("### Last 24 hours")
        st.line_chart(frame.set_index("timestamp")[["total_patients", "average_wait_time"]])


def render_forecast_page() -> None:
    st.header("🔮 Forecasts")

    hours = st.slider("Forecast horizon (hours)", 1, 72, 12)
    if st.button("Generate Forecast", type="primary"):
        with st.spinner("Decomposing history and forecasting..."):
            result = api_get("/api/predictions/advanced/metrics", params={"hours": hours})
        if result:
            left, right = st.columns(2)
            with left:
                st.write("### Queue length")
                st.line_chart(forecast_frame(result["queue_length"]))
            with right:
                st.write("### Wait time")
                st.line_chart(forecast_frame(result["wait_times"]))
            st.write("### Insights")
            render_insights(result.get("insights", []))


def render_staffing_page() -> None:
    st.header("👩‍⚕️ Staffing & Capacity")

    hours = st.slider("Staffing horizon (hours)", 1, 72, 24)
    plan = api_get("/api/predictions/advanced/staffing", params={"hours": hours})
    if plan:
        summary = plan["summary"]
        col1, col2, col3 = st.columns(3)
        col1.metric("Additional staff hours", summary["total_additional_staff_hours"])
        col2.metric("Peak periods", len(summary["peak_periods"]))
        col3.metric("Cost impact", summary["cost_impact"])
        st.dataframe(pd.DataFrame(plan["recommendations"]), use_container_width=True)

    days = st.slider("Capacity outlook (days)", 1, 14, 7)
    capacity = api_get("/api/predictions/advanced/capacity", params={"days": days})
    if capacity:
        trends = capacity["weekly_trends"]
        st.caption(
            f"Average daily patients: {trends['average_daily_patients']} | "
            f"Peak day: {trends['peak_day_of_week']} | Growth: {trends['growth_trend']}%"
        )
        st.dataframe(pd.DataFrame(capacity["daily_forecasts"]), use_container_width=True)


def render_scenario_page() -> None:
    st.header("🧪 What-If Scenarios")

    col1, col2, col3 = st.columns(3)
    with col1:
        scenario = st.selectbox("Scenario", SCENARIOS, index=1)
    with col2:
        duration = st.number_input("Duration (hours)", min_value=1, max_value=72, value=12)
    with col3:
        multiplier = st.number_input("Baseline multiplier", min_value=0.1, max_value=5.0, value=1.0)

    if st.button("Run Scenario", type="primary"):
        with st.spinner("Scaling the forecast..."):
            result = api_post(
                "/api/predictions/advanced/scenario",
                {
                    "scenario": scenario,
                    "duration_hours": int(duration),
                    "baseline_multiplier": float(multiplier),
                },
            )
        if result:
            st.subheader(result["description"])
            st.line_chart(forecast_frame(result["predictions"]["queue_length"]))
            render_insights(result.get("insights", []))


# ==========================================
# Main App Router
# ==========================================
def main() -> None:
    st.sidebar.title("ER Queue Forecasting")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigation Module",
        ["Overview", "Forecasts", "Staffing & Capacity", "Scenarios"],
    )

    st.sidebar.markdown("---")
    health = api_get("/api/health", timeout=3)
    if health:
        st.sidebar.caption(f"Service: {health['status']} (v{health['version']})")
        st.sidebar.caption(f"Sensor polling: {'on' if health['polling'] else 'off'}")

    if page == "Overview":
        render_overview_page()
    elif page == "Forecasts":
        render_forecast_page()
    elif page == "Staffing & Capacity":
        render_staffing_page()
    elif page == "Scenarios":
        render_scenario_page()


if __name__ == "__main__":
    main()
