
import pytest

def test_imports():
    """
    Smoke test to ensure critical modules can be imported without error.
    This catches syntax errors, missing dependencies, or circular imports.
    """
    try:
        from mathsophos.pipeline import ContentPipeline
        from mathsophos.pipeline.runner import main
        from mathsophos.llm import GenerationClient
        import app
    except ImportError as e:
        pytest.fail(f"Failed to import core modules: {e}")
    except Exception as e:
        pytest.fail(f"Unexpected error during import: {e}")

def test_pipeline_end_to_end():
    """
    Authored LaTeX goes through every stage and comes out as HTML.
    """
    from mathsophos.pipeline import ContentPipeline

    pipeline = ContentPipeline()
    md = pipeline.normalize(
        "\\section{Introduction}\nSoit \\( q \\) un réel.\n\n"
        "\\begin{array}{cc} q & q^2 \\\\ 2 & 4 \\end{array}"
    )
    result = pipeline.render(md)
    assert result.sections[0].heading == "Introduction"
    assert '<table class="latex-table">' in result.html
    assert result.math_errors == []
