'''Tests for the localization table helpers.'''
import numpy as np
import pandas as pd
import pytest

from frameconnect import (
	LOC_COLUMNS,
	Localization,
	LocalizationError,
	as_loc_table,
	to_localizations,
	validate_locs,
	with_track_ids,
	read_locs,
	save_locs,
	save_locs_as_mat,
	frame_connect,
)
from helpers import make_loc, make_table


class TestLocTable:

	def test_from_records(self):
		table = as_loc_table([make_loc(1.0, 2.0, 1), make_loc(3.0, 4.0, 2)])
		assert list(table.columns) == LOC_COLUMNS
		assert len(table) == 2
		assert table['frame'].dtype == np.int64
		assert table['x'].tolist() == [1.0, 3.0]

	def test_defaults_for_optional_columns(self):
		df = pd.DataFrame({
			'x' : [1.0, 2.0],
			'y' : [1.0, 2.0],
			'sigma_x' : [0.01, 0.01],
			'sigma_y' : [0.02, 0.02],
			'frame' : [1, 3],
		})
		table = as_loc_table(df)
		assert (table['sigma_xy'] == 0).all()
		assert (table['dataset'] == 1).all()
		assert (table['track_id'] == 0).all()
		assert table['id'].tolist() == [0, 1]

	def test_missing_required_column(self):
		df = pd.DataFrame({'x' : [1.0], 'y' : [1.0], 'frame' : [1]})
		with pytest.raises(LocalizationError, match = 'sigma_x'):
			as_loc_table(df)

	def frame_table(self, frames, datasets = (1, 1)):
		return pd.DataFrame({
			'x' : [1.0, 1.0],
			'y' : [1.0, 1.0],
			'sigma_x' : [0.02, 0.02],
			'sigma_y' : [0.02, 0.02],
			'frame' : list(frames),
			'dataset' : list(datasets),
		})

	def test_whole_float_frames_accepted(self):
		table = as_loc_table(self.frame_table([1.0, 2.0]))
		assert table['frame'].tolist() == [1, 2]
		assert table['frame'].dtype == np.int64

	def test_fractional_frame(self):
		with pytest.raises(LocalizationError, match = 'frame .*localization 1'):
			as_loc_table(self.frame_table([1.0, 2.7]))

	def test_nan_frame(self):
		with pytest.raises(LocalizationError, match = 'frame .*localization 1'):
			as_loc_table(self.frame_table([1.0, np.nan]))

	def test_nan_dataset(self):
		with pytest.raises(LocalizationError, match = 'dataset .*localization 0'):
			as_loc_table(self.frame_table([1, 2], datasets = [np.nan, 1.0]))

	def test_fractional_frame_through_frame_connect(self):
		with pytest.raises(LocalizationError):
			frame_connect(self.frame_table([1.0, 2.7]))

	def test_empty(self):
		table = as_loc_table([])
		assert len(table) == 0
		assert list(table.columns) == LOC_COLUMNS

	def test_localization_defaults(self):
		loc = Localization(1.0, 2.0, 0.01, 0.01)
		assert loc.sigma_xy == 0.0
		assert loc.frame == 1
		assert loc.dataset == 1
		assert loc.track_id == 0
		with pytest.raises(AttributeError):
			loc.track_id = 3

	def test_to_localizations(self):
		locs = [make_loc(1.0, 2.0, 1), make_loc(3.0, 4.0, 2)]
		records = to_localizations(make_table(locs))
		assert records[1].x == 3.0
		assert records[1].frame == 2


class TestWithTrackIds:

	def test_returns_new_table(self):
		table = make_table([make_loc(1.0, 1.0, 1), make_loc(2.0, 2.0, 2)])
		relabeled = with_track_ids(table, [5, 6])
		assert relabeled['track_id'].tolist() == [5, 6]
		assert table['track_id'].tolist() == [0, 0]
		assert relabeled['x'].tolist() == table['x'].tolist()

	def test_length_mismatch(self):
		table = make_table([make_loc(1.0, 1.0, 1)])
		with pytest.raises(ValueError):
			with_track_ids(table, [1, 2])


class TestValidateLocs:

	def test_valid(self):
		validate_locs(make_table([make_loc(1.0, 1.0, 1)]))

	def test_zero_sigma(self):
		table = make_table([make_loc(1.0, 1.0, 1), make_loc(1.0, 1.0, 2, sigma = 0.0)])
		with pytest.raises(LocalizationError, match = 'localization 1'):
			validate_locs(table)

	def test_zero_sigma_allowed_when_not_required(self):
		table = make_table([make_loc(1.0, 1.0, 1, sigma = 0.0)])
		validate_locs(table, require_positive_sigma = False)

	def test_bad_frame(self):
		table = make_table([make_loc(1.0, 1.0, 0)])
		with pytest.raises(LocalizationError, match = 'frame'):
			validate_locs(table)

	def test_bad_dataset(self):
		table = make_table([make_loc(1.0, 1.0, 1, dataset = 0)])
		with pytest.raises(LocalizationError, match = 'dataset'):
			validate_locs(table)

	def test_singular_covariance(self):
		table = make_table([make_loc(1.0, 1.0, 1, sigma = 0.01, sigma_xy = 0.0002)])
		with pytest.raises(LocalizationError, match = 'positive definite'):
			validate_locs(table)

	def test_non_finite_position(self):
		table = make_table([make_loc(np.nan, 1.0, 1)])
		with pytest.raises(LocalizationError, match = 'non-finite x'):
			validate_locs(table)


class TestFileIO:

	def test_txt_round_trip(self, tmp_path):
		table = make_table([make_loc(1.0, 2.0, 1, track_id = 4), make_loc(3.0, 4.0, 2)])
		path = str(tmp_path / 'locs.txt')
		save_locs(table, path)
		loaded = read_locs(path)
		pd.testing.assert_frame_equal(loaded, table)

	def test_save_mat(self, tmp_path):
		from scipy import io as sio
		table = make_table([make_loc(1.0, 2.0, 1), make_loc(3.0, 4.0, 2)])
		path = str(tmp_path / 'locs.mat')
		save_locs_as_mat(path, table, connected = table)
		loaded = sio.loadmat(path)
		assert 'combined' in loaded
		assert 'connected' in loaded
