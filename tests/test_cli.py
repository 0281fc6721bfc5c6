"""Tests for the grade-essay and grade-essays command-line tools."""

import pytest
import yaml
from unittest.mock import patch

from examiner_panel.libs.llm import InferenceError
from examiner_panel.tools.essay_grading import batch_cli, cli


@pytest.fixture
def essay_file(tmp_path):
    path = tmp_path / "answer.txt"
    path.write_text("Prices rise because demand grows. However, supply may respond.", encoding="utf-8")
    return path


def test_grade_essay_writes_yaml(essay_file, sample_config, fake_client_class, capsys):
    argv = ['grade-essay', '--essay', str(essay_file), '--question', 'Explain inflation.',
            '--question-type', '8-mark', '--detailed']
    with patch('sys.argv', argv), \
            patch('examiner_panel.tools.essay_grading.cli.load_all_configs', return_value=sample_config), \
            patch('examiner_panel.libs.llm.InferenceClient.from_configs', return_value=fake_client_class()):
        cli.main()

    output_path = essay_file.with_name("answer_grading.yaml")
    with open(output_path) as f:
        data = yaml.safe_load(f)
    assert data['max_score'] == 8
    assert data['metadata']['question_type'] == "8-mark"
    assert 'detailed_feedback' in data
    assert "Grading Complete" in capsys.readouterr().out


def test_grade_essay_all_examiners_fail(essay_file, sample_config, fake_client_class):
    client = fake_client_class(replies={key: InferenceError("down") for key in ("AO1", "AO2", "AO3", "AO4")})
    argv = ['grade-essay', '--essay', str(essay_file), '--question', 'Explain inflation.']
    with patch('sys.argv', argv), \
            patch('examiner_panel.tools.essay_grading.cli.load_all_configs', return_value=sample_config), \
            patch('examiner_panel.libs.llm.InferenceClient.from_configs', return_value=client):
        with pytest.raises(SystemExit) as exc_info:
            cli.main()
    assert exc_info.value.code == 2


def test_grade_essay_missing_file(tmp_path):
    argv = ['grade-essay', '--essay', str(tmp_path / "missing.txt"), '--question', 'Q']
    with patch('sys.argv', argv):
        with pytest.raises(SystemExit) as exc_info:
            cli.main()
    assert exc_info.value.code == 1


def test_grade_essays_batch(tmp_path, sample_config, fake_client_class, capsys):
    manifest = tmp_path / "essays.yaml"
    manifest.write_text(yaml.dump({"essays": [
        {"id": "s1", "question": "Q1", "essay": "Demand rises because incomes grow."},
        {"id": "s2", "question": "Q2", "essay": "However, prices may fall.", "question_type": "6-mark"},
    ]}))
    summary = tmp_path / "summary.yaml"
    argv = ['grade-essays', '--manifest', str(manifest), '--summary', str(summary)]

    with patch('sys.argv', argv), \
            patch('examiner_panel.tools.essay_grading.batch_cli.load_all_configs', return_value=sample_config), \
            patch('examiner_panel.libs.llm.InferenceClient.from_configs', return_value=fake_client_class()):
        batch_cli.main()

    assert (tmp_path / "results" / "s1.yaml").exists()
    assert (tmp_path / "results" / "s2.yaml").exists()
    with open(summary) as f:
        data = yaml.safe_load(f)
    assert data['grading_summary']['successful'] == 2
    assert "Batch Grading Complete" in capsys.readouterr().out
