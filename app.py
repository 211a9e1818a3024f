# -*- coding: utf-8 -*-
from __future__ import annotations

import html

import streamlit as st

from mathsophos.config import load_settings
from mathsophos.pipeline import ContentPipeline, LlmJsonError, validate_content
from mathsophos.pipeline.errors import PipelineError

_MODES = {
    "LaTeX / Markdown": "text",
    "Leçon (JSON généré)": "lesson",
    "Exercice (JSON généré)": "exercise",
}

_EXAMPLE = r"""\section{Introduction}
Soit \( q \) un réel, on pose \[ S_n = \sum_{k=0}^{n} q^k \]

\begin{itemize}
\item \textbf{Cas} $q \neq 1$
\item Cas $q = 1$
\end{itemize}

## Théorème
$$S_n = \frac{1-q^{n+1}}{1-q}$$
"""


def _get_pipeline() -> ContentPipeline:
    if "pipeline" not in st.session_state:
        st.session_state["pipeline"] = ContentPipeline.from_settings(load_settings())
    return st.session_state["pipeline"]


def _normalize(pipeline: ContentPipeline, raw: str, mode: str) -> str:
    if mode == "lesson":
        return pipeline.process_generated_lesson(raw)
    if mode == "exercise":
        return pipeline.process_generated_exercise(raw)
    return pipeline.normalize(raw)


def _render_report(raw: str, pipeline: ContentPipeline) -> None:
    report = validate_content(raw, pipeline.policy)
    if report.should_reject:
        st.error("Contenu rejeté : à régénérer.")
    elif not report.is_valid:
        st.warning("Défauts corrigibles détectés.")
    else:
        st.success("Contenu valide.")
    for err in report.errors:
        st.markdown(f"- {html.escape(err)}")


def main() -> None:
    st.set_page_config(page_title="MathSophos - aperçu du contenu", layout="wide")
    st.title("Aperçu du contenu")

    pipeline = _get_pipeline()
    mode = _MODES[st.sidebar.radio("Entrée", list(_MODES))]
    raw = st.text_area("Contenu brut", value=_EXAMPLE if mode == "text" else "", height=320)
    if not raw.strip():
        st.info("Collez un contenu à normaliser.")
        return

    left, right = st.columns(2)
    with left:
        st.subheader("Validation")
        _render_report(raw, pipeline)
        try:
            normalized = _normalize(pipeline, raw, mode)
        except LlmJsonError as e:
            st.error(f"JSON illisible : {e}")
            for attempt in e.attempts:
                st.caption(attempt)
            return
        except PipelineError as e:
            st.error(str(e))
            return
        st.subheader("Markdown normalisé")
        st.code(normalized, language="markdown")

    with right:
        st.subheader("Rendu")
        result = pipeline.render(normalized)
        if result.math_errors:
            st.warning(f"{len(result.math_errors)} formule(s) non rendue(s)")
        st.markdown(result.html, unsafe_allow_html=True)


if __name__ == "__main__":
    main()
