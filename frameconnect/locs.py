'''
locs.py -- the localization table used throughout frame connection,
plus conversion, validation and file I/O helpers.

A localization table is a pandas.DataFrame with one row per
localization and the columns in LOC_COLUMNS. Functions in this
package never modify a table in place; they return new ones.

'''
import numpy as np
import pandas as pd
from collections import namedtuple
from scipy import io as sio

# Column layout of a localization table
LOC_COLUMNS = [
	'x',			# um
	'y',			# um
	'sigma_x',		# um, standard deviation of x
	'sigma_y',		# um, standard deviation of y
	'sigma_xy',		# um^2, covariance of x and y
	'photons',
	'sigma_photons',
	'bg',
	'sigma_bg',
	'frame',		# 1-based
	'dataset',		# 1-based
	'track_id',		# 0 if unassigned
	'id',
]
INT_COLUMNS = ['frame', 'dataset', 'track_id', 'id']
REQUIRED_COLUMNS = ['x', 'y', 'sigma_x', 'sigma_y', 'frame']
OPTIONAL_DEFAULTS = {
	'sigma_xy' : 0.0,
	'photons' : 0.0,
	'sigma_photons' : 0.0,
	'bg' : 0.0,
	'sigma_bg' : 0.0,
	'dataset' : 1,
	'track_id' : 0,
}

Localization = namedtuple('Localization', LOC_COLUMNS,
	defaults = (0.0, 0.0, 0.0, 0.0, 0.0, 1, 1, 0, 0))
Localization.__doc__ = '''
A single 2D localization. Only x, y, sigma_x and sigma_y are
required; the remaining fields default to sigma_xy = 0 (independent
axes), no photon/background information, frame 1, dataset 1,
track_id 0 and id 0.

'''

class LocalizationError(ValueError):
	'''
	Raised when localizations violate the input contract of an
	operation, e.g. a non-positive positional uncertainty entering
	the precision-weighted combination.

	'''
	pass

def as_loc_table(locs):
	'''
	Convert *locs* into a localization table.

	INPUT
		locs	:	pandas.DataFrame with at least the columns in
					REQUIRED_COLUMNS, or a sequence of Localization

	RETURNS
		pandas.DataFrame, a new table with the columns in LOC_COLUMNS
			and a fresh RangeIndex. Missing optional columns are
			filled with their defaults; a missing 'id' column is
			filled with the row number.

	'''
	if isinstance(locs, pd.DataFrame):
		missing = [c for c in REQUIRED_COLUMNS if c not in locs.columns]
		if missing:
			raise LocalizationError('localization table is missing columns: %s' % \
				', '.join(missing))
		table = locs.reset_index(drop = True).copy()
	else:
		locs = list(locs)
		if len(locs) == 0:
			return empty_loc_table()
		table = pd.DataFrame([tuple(loc) for loc in locs], columns = LOC_COLUMNS)

	for column, default in OPTIONAL_DEFAULTS.items():
		if column not in table.columns:
			table[column] = default
	if 'id' not in table.columns:
		table['id'] = np.arange(len(table))

	table = table[LOC_COLUMNS].copy()
	for column in LOC_COLUMNS:
		if column in INT_COLUMNS:
			values = table[column].values.astype('float64')
			bad = ~np.isfinite(values) | (values != np.round(values))
			if bad.any():
				row = np.nonzero(bad)[0][0]
				raise LocalizationError('%s must be a whole number; localization %d has %s = %r' % \
					(column, row, column, table[column].values[row]))
			table[column] = table[column].astype('int64')
		elif not np.issubdtype(table[column].dtype, np.floating):
			table[column] = table[column].astype('float64')
	return table

def empty_loc_table():
	table = pd.DataFrame({c : pd.Series([], dtype = 'float64') for c in LOC_COLUMNS})
	for column in INT_COLUMNS:
		table[column] = table[column].astype('int64')
	return table

def to_localizations(locs):
	'''
	Convert a localization table to a list of Localization records.

	'''
	return [Localization(*row) for row in locs[LOC_COLUMNS].itertuples(index = False)]

def with_track_ids(locs, track_ids):
	'''
	Return a copy of *locs* with its track_id column replaced by
	*track_ids*.

	'''
	track_ids = np.asarray(track_ids, dtype = 'int64')
	if track_ids.shape[0] != len(locs):
		raise ValueError('got %d track ids for %d localizations' % \
			(track_ids.shape[0], len(locs)))
	return locs.assign(track_id = track_ids)

def validate_locs(locs, require_positive_sigma = True):
	'''
	Check that a localization table can enter the frame connection
	pipeline.

	INPUT
		locs					:	pandas.DataFrame, localization table
		require_positive_sigma	:	bool, whether to insist on
									sigma_x > 0 and sigma_y > 0 and on a
									positive-definite covariance

	RAISES
		LocalizationError, naming the first offending row

	'''
	if len(locs) == 0:
		return
	for column in ['x', 'y', 'sigma_x', 'sigma_y', 'sigma_xy']:
		bad = ~np.isfinite(locs[column].values.astype('float64'))
		if bad.any():
			raise LocalizationError('non-finite %s in localization %d' % \
				(column, np.nonzero(bad)[0][0]))
	for column in ['frame', 'dataset']:
		bad = locs[column].values < 1
		if bad.any():
			row = np.nonzero(bad)[0][0]
			raise LocalizationError('%s must be >= 1; localization %d has %s = %d' % \
				(column, row, column, locs[column].values[row]))
	if require_positive_sigma:
		sx = locs['sigma_x'].values.astype('float64')
		sy = locs['sigma_y'].values.astype('float64')
		sxy = locs['sigma_xy'].values.astype('float64')
		bad = (sx <= 0) | (sy <= 0)
		if bad.any():
			row = np.nonzero(bad)[0][0]
			raise LocalizationError('positional uncertainty must be positive; ' \
				'localization %d has sigma_x = %g, sigma_y = %g' % (row, sx[row], sy[row]))
		bad = (sx ** 2) * (sy ** 2) - sxy ** 2 <= 0
		if bad.any():
			row = np.nonzero(bad)[0][0]
			raise LocalizationError('covariance of localization %d is not ' \
				'positive definite (sigma_xy = %g)' % (row, sxy[row]))

def read_locs(path):
	'''
	Read a tab-delimited localization file into a localization table.

	'''
	return as_loc_table(pd.read_csv(path, sep = '\t'))

def save_locs(locs, path):
	locs.to_csv(path, sep = '\t', index = False)

def save_locs_as_mat(
	mat_file_name,
	combined,
	connected = None,
	info = None
):
	'''
	Save frame connection results as a MATLAB .mat file.

	INPUT
		mat_file_name	:	str
		combined		:	pandas.DataFrame, combined localizations
		connected		:	pandas.DataFrame, track-labeled localizations
		info			:	ConnectInfo, its rate parameters are stored
							alongside the tables

	RETURNS
		dict, the saved structure

	'''
	result = {'combined' : {c : combined[c].values for c in LOC_COLUMNS}}
	if connected is not None:
		result['connected'] = {c : connected[c].values for c in LOC_COLUMNS}
	if info is not None:
		result['params'] = {
			'k_on' : info.k_on,
			'k_off' : info.k_off,
			'k_bleach' : info.k_bleach,
			'p_miss' : info.p_miss,
			'density' : np.asarray(info.density),
		}
	sio.savemat(mat_file_name, result)
	return result
