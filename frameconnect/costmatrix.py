'''
costmatrix.py -- cost matrix for the linear assignment problem that
decides which members of a precluster are the same blinking event.

'''
import numpy as np

from .estimate import state_densities

# Valid assignments with a non-finite cost are replaced by this
# multiple of the summed magnitude of all finite valid costs
INVALID_COST_FACTOR = 2.0

def create_cost_matrix(
	cluster,
	k_on,
	k_off,
	k_bleach,
	p_miss,
	density,
	max_frame_gap,
	n_frames,
	rho_on = None,
	rho_dark = None
):
	'''
	Build the 2N x 2N cost matrix for a cluster of N localizations.

	The N x N blocks are
		upper left	:	"connection", cost[i, j] (i < j) of linking
						localization i to the later localization j
		lower left	:	"birth", cost[N + i, j] of localization j
						starting a new blinking event
		upper right	:	"death", cost[i, N + j] of localization i
						ending its blinking event
		lower right	:	"auxiliary", the transpose of the connection
						block

	Costs are negative log-likelihoods. Cells outside this pattern
	are +inf (forbidden). Valid cells whose cost is not finite, such
	as links between two localizations in the same frame, are set to
	a large finite penalty.

	INPUT
		cluster			:	pandas.DataFrame, one cluster from
							organize_clusters(), sorted by frame
		k_on, k_off, k_bleach	:	float, rates in 1/frame
		p_miss			:	float, probability of missing a visible
							emitter in a frame
		density			:	float, initial emitter density around
							this cluster (emitters/um^2)
		max_frame_gap	:	int
		n_frames		:	int, number of frames in the acquisition
		rho_on, rho_dark	:	numpy.array, optional unit-density state
							curves from state_densities(); computed
							if not given

	RETURNS
		numpy.array (2D), numpy.array (2D, bool) :
			the cost matrix;
			the mask of valid (non-forbidden) assignments

	'''
	x = cluster['x'].values.astype('float64')
	y = cluster['y'].values.astype('float64')
	sx2 = cluster['sigma_x'].values.astype('float64') ** 2
	sy2 = cluster['sigma_y'].values.astype('float64') ** 2
	sxy = cluster['sigma_xy'].values.astype('float64')
	frames = cluster['frame'].values.astype('int64')
	n_frames = max(int(n_frames), int(frames.max()))
	if rho_on is None or rho_dark is None or rho_on.shape[0] < n_frames:
		rho_on, rho_dark = state_densities(k_on, k_off, k_bleach, n_frames)

	N = frames.shape[0]
	cost = np.full((2 * N, 2 * N), np.inf)
	valid = np.zeros((2 * N, 2 * N), dtype = 'bool')

	with np.errstate(divide = 'ignore', invalid = 'ignore', over = 'ignore'):
		# Connection and auxiliary blocks
		ii, jj = np.triu_indices(N, k = 1)
		delta_frame = np.abs(frames[jj] - frames[ii]).astype('float64')
		cx2 = sx2[ii] + sx2[jj]
		cy2 = sy2[ii] + sy2[jj]
		cxy = sxy[ii] + sxy[jj]
		det = cx2 * cy2 - cxy ** 2
		dx = x[ii] - x[jj]
		dy = y[ii] - y[jj]
		mahal = (cy2 * dx ** 2 - 2 * cxy * dx * dy + cx2 * dy ** 2) / det
		separation_cost = np.log(2 * np.pi) + 0.5 * np.log(det) + 0.5 * mahal
		observation_cost = -np.log((p_miss ** (delta_frame - 1)) * (1 - p_miss))
		still_on_cost = (k_off + k_bleach) * delta_frame
		link_cost = (separation_cost + observation_cost + still_on_cost) / 2.0
		link_cost[delta_frame == 0] = np.inf

		cost[ii, jj] = link_cost
		cost[jj + N, ii + N] = link_cost
		valid[ii, jj] = True
		valid[jj + N, ii + N] = True

		# Birth and death blocks
		frame_idx = np.clip(frames - 1, 0, rho_on.shape[0] - 1)
		delta_past = np.minimum(max_frame_gap, frames - 1)
		delta_future = np.maximum(np.minimum(max_frame_gap, n_frames - frames), 0)
		loc_area = np.pi * np.sqrt(np.maximum(sx2 * sy2 - sxy ** 2, np.finfo('float64').eps))
		rho_dark_now = density * rho_dark[frame_idx]
		rho_on_past = density * rho_on[np.clip(frame_idx - delta_past, 0, None)]
		birth_cost = -np.log(1 - p_miss) - np.log(
			rho_dark_now * loc_area * (1 - np.exp(-k_on)) * np.exp(-delta_past * k_on) + \
			rho_on_past * loc_area * (p_miss ** delta_past)
		)
		death_cost = -np.log((1 - np.exp(-k_off)) + (1 - np.exp(-k_bleach)) + \
			(p_miss ** delta_future))

	cost[N:, :N] = birth_cost[np.newaxis, :]
	cost[:N, N:] = death_cost[:, np.newaxis]
	valid[N:, :N] = True
	valid[:N, N:] = True

	# Magnitudes, not signed costs: log-likelihood terms can be negative
	# and the penalty must stay above every real cost.
	bad = valid & ~np.isfinite(cost)
	if bad.any():
		cost[bad] = INVALID_COST_FACTOR * np.abs(cost[valid & ~bad]).sum()

	return cost, valid
