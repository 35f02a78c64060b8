'''
combine.py -- combine localizations sharing a track id into one
higher-precision localization.

'''
import numpy as np
import pandas as pd

from .locs import LOC_COLUMNS, INT_COLUMNS, as_loc_table, validate_locs

def combine_localizations(locs):
	'''
	Combine the localizations in *locs* that share a track_id,
	treating them as independent measurements of one position with
	Gaussian errors.

	The combined position is the precision-weighted mean using the
	full 2x2 covariance of each localization, and the combined
	covariance is the inverse of the summed precision matrices. Photon
	counts and backgrounds are summed and their uncertainties added in
	quadrature. frame, dataset and id are taken from the first member
	of each track. Tracks with a single member are passed through
	unchanged.

	INPUT
		locs	:	pandas.DataFrame, localization table with track_id
					populated

	RETURNS
		pandas.DataFrame, one row per distinct track_id, in increasing
			track_id order

	RAISES
		LocalizationError, if a localization has a non-positive
			uncertainty or a covariance that is not positive definite

	'''
	locs = as_loc_table(locs)
	validate_locs(locs)
	n_locs = len(locs)
	if n_locs == 0:
		return locs

	order = np.argsort(locs['track_id'].values, kind = 'stable')
	sorted_locs = locs.iloc[order].reset_index(drop = True)
	track_ids = sorted_locs['track_id'].values
	starts = np.concatenate([[0], np.nonzero(np.diff(track_ids))[0] + 1])
	stops = np.concatenate([starts[1:], [n_locs]])
	n_tracks = starts.shape[0]

	# Accumulate in float64 regardless of the storage type; with float32
	# storage the determinants of typical SMLM covariances fall below
	# its epsilon.
	x = sorted_locs['x'].values.astype('float64')
	y = sorted_locs['y'].values.astype('float64')
	sx2 = sorted_locs['sigma_x'].values.astype('float64') ** 2
	sy2 = sorted_locs['sigma_y'].values.astype('float64') ** 2
	sxy = sorted_locs['sigma_xy'].values.astype('float64')
	det = sx2 * sy2 - sxy ** 2
	p11 = sy2 / det
	p22 = sx2 / det
	p12 = -sxy / det

	sum_p11 = np.add.reduceat(p11, starts)
	sum_p22 = np.add.reduceat(p22, starts)
	sum_p12 = np.add.reduceat(p12, starts)
	mu_x = np.add.reduceat(p11 * x + p12 * y, starts)
	mu_y = np.add.reduceat(p12 * x + p22 * y, starts)

	det_p = sum_p11 * sum_p22 - sum_p12 ** 2
	cov_xx = sum_p22 / det_p
	cov_yy = sum_p11 / det_p
	cov_xy = -sum_p12 / det_p

	first = sorted_locs.iloc[starts].reset_index(drop = True)
	combined = {
		'x' : cov_xx * mu_x + cov_xy * mu_y,
		'y' : cov_xy * mu_x + cov_yy * mu_y,
		'sigma_x' : np.sqrt(cov_xx),
		'sigma_y' : np.sqrt(cov_yy),
		'sigma_xy' : cov_xy,
		'photons' : np.add.reduceat(sorted_locs['photons'].values, starts),
		'sigma_photons' : np.sqrt(np.add.reduceat(sorted_locs['sigma_photons'].values ** 2, starts)),
		'bg' : np.add.reduceat(sorted_locs['bg'].values, starts),
		'sigma_bg' : np.sqrt(np.add.reduceat(sorted_locs['sigma_bg'].values ** 2, starts)),
	}
	result = pd.DataFrame({c : first[c].values for c in LOC_COLUMNS})
	for column, values in combined.items():
		result[column] = values.astype(locs[column].dtype)

	# Singletons keep their original values exactly
	singletons = (stops - starts) == 1
	if singletons.any():
		for column in LOC_COLUMNS:
			if column in INT_COLUMNS:
				continue
			result.loc[singletons, column] = first.loc[singletons, column].values

	return result
