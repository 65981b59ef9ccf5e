import os

import requests
import streamlit as st

API_BASE = os.getenv("API_BASE", "http://127.0.0.1:8001")


def call_analyze(filename: str, data: bytes, mime_type: str, focus_areas: str = "",
                 api_base: str = API_BASE, timeout: int = 120) -> dict:
    """POST one photo to /api/analyze and return the `data` payload."""
    files = {"image": (filename, data, mime_type or "image/jpeg")}
    form = {"focusAreas": focus_areas} if focus_areas.strip() else {}
    r = requests.post(api_base + "/api/analyze", files=files, data=form, timeout=timeout)
    try:
        payload = r.json()
    except ValueError:
        payload = {}
    if not r.ok or not payload.get("success"):
        raise RuntimeError(f"/api/analyze → {r.status_code}: {payload.get('error') or r.text}")
    return payload["data"]


def render_result(data: dict) -> None:
    rating = data["rating"]
    c1, c2, c3 = st.columns(3)
    c1.metric("Overall", f"{rating['overall']:.1f}/10")
    c2.metric("Composite", f"{data['compositeScore']:.1f}/10")
    c3.metric("Confidence", f"{data['confidence']:.0%}")

    st.subheader("Best features")
    for item in data["bestFeatures"]:
        st.markdown(f"- {item}")

    st.subheader("Style recommendations")
    for item in data["styleAndFashion"]:
        st.markdown(f"- {item}")

    st.subheader("Improvement plan")
    for key, label in (("immediate", "Immediate"), ("shortTerm", "Short term"), ("longTerm", "Long term")):
        stage = data["improvementPlan"][key]
        st.markdown(f"**{label}** ({stage['timeframe']})")
        for action in stage["actions"]:
            st.markdown(f"- {action}")

    with st.expander("Category breakdown"):
        st.json(data["categoryBreakdown"])
    with st.expander("Full analysis"):
        st.write(data["analysis"]["overall"])


def main() -> None:
    st.set_page_config(page_title="Photo Rating", layout="wide")
    st.title("Photo Rating")

    uploaded = st.file_uploader("Upload a photo", type=["jpg", "jpeg", "png", "webp"])
    focus = st.text_input("Focus areas (comma separated, optional)")

    if uploaded and st.button("Analyze"):
        with st.spinner("Analyzing..."):
            try:
                data = call_analyze(uploaded.name, uploaded.getvalue(), uploaded.type, focus)
            except (RuntimeError, requests.RequestException) as e:
                st.error(str(e))
                return
        c1, c2 = st.columns([1, 2])
        c1.image(uploaded.getvalue(), use_column_width=True)
        with c2:
            render_result(data)
    elif not uploaded:
        st.info("Upload a photo to enable analysis.")


if __name__ == "__main__":
    main()
