# tests/test_cli.py

import argparse

import numpy as np
import pytest
import yaml

from connectedness.utils.grid import MAX_SCORE
from example_segmentation import apply_overrides, main, parse_seed, run_segmentation


@pytest.fixture
def grid_path(tmp_path):
    """A 10x10 RGB grid with a bright square in the top-left corner."""
    grid = np.full((10, 10, 3), 20.0)
    grid[:5, :5] = 100.0
    path = tmp_path / "grid.npy"
    np.save(path, grid)
    return str(path)


@pytest.fixture
def config_path(tmp_path):
    config = {
        'seed': [2, 2],
        'affinity': {
            'model': 'vector',
            'homogeneity': {'mean': [100, 100, 100], 'covariance': (np.eye(3) * 25).tolist()},
            'difference': {'mean': [0, 0, 0], 'covariance': (np.eye(3) * 25).tolist()},
        },
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(config))
    return str(path)


class TestCommandLine:
    """Test the segmentation command line."""

    def test_parse_seed(self):
        assert parse_seed("12,40") == (12, 40)
        assert parse_seed("1,2,3") == (1, 2, 3)
        with pytest.raises(argparse.ArgumentTypeError):
            parse_seed("a,b")

    def test_apply_overrides(self):
        args = argparse.Namespace(
            input="in.npy", seed=(1, 2), threshold=None, output_mask="mask.png",
            output_scores=None, figure=None, estimate_radius=2
        )
        config = apply_overrides({'threshold': 10, 'input': {'grayscale': True}}, args)

        assert config['input'] == {'grayscale': True, 'path': "in.npy"}
        assert config['seed'] == (1, 2)
        assert config['threshold'] == 10
        assert config['output'] == {'mask': "mask.png"}
        assert config['estimation'] == {'enabled': True, 'radius': 2}

    def test_main_writes_outputs(self, tmp_path, grid_path, config_path):
        mask_path = tmp_path / "mask.png"
        scores_path = tmp_path / "scores.npy"
        figure_path = tmp_path / "summary.png"

        code = main([
            "--config", config_path, "--input", grid_path,
            "--output-mask", str(mask_path), "--output-scores", str(scores_path),
            "--figure", str(figure_path),
        ])

        assert code == 0
        assert mask_path.exists()
        assert figure_path.exists()

        scores = np.load(scores_path)
        assert scores[2, 2] == MAX_SCORE
        assert scores[0, 0] > scores[9, 9]

    def test_run_segmentation_with_estimation(self, grid_path):
        config = apply_overrides({}, argparse.Namespace(
            input=grid_path, seed=(1, 1), threshold=None, output_mask=None,
            output_scores=None, figure=None, estimate_radius=1
        ))

        controller = run_segmentation(config)

        mask = controller.get_binary_mask()
        assert mask[1, 1]
        assert mask.shape == (10, 10)

    def test_volume_input(self, tmp_path):
        path = tmp_path / "volume.npy"
        np.save(path, np.full((3, 6, 6), 10.0))
        figure_path = tmp_path / "volume.png"
        mask_path = tmp_path / "mask.npy"
        config = {
            'seed': [1, 2, 2],
            'affinity': {
                'model': 'scalar',
                'homogeneity': {'mean': 10.0, 'variance': 4.0},
                'difference': {'mean': 0.0, 'variance': 4.0},
            },
        }
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.safe_dump(config))

        code = main(["--config", str(config_path), "--input", str(path),
                     "--output-mask", str(mask_path), "--figure", str(figure_path)])

        assert code == 0
        assert np.load(mask_path).all()
        assert figure_path.exists()

    def test_missing_input(self, config_path):
        assert main(["--config", config_path]) == 1

    def test_seed_out_of_bounds(self, grid_path, config_path):
        assert main(["--config", config_path, "--input", grid_path, "--seed", "20,20"]) == 1

    def test_missing_config(self, tmp_path):
        assert main(["--config", str(tmp_path / "missing.yaml")]) == 1
