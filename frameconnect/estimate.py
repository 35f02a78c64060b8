'''
estimate.py -- estimate the photophysical rate parameters and the
local emitter densities from preclusters.

Blinking is modeled as a three-state Markov chain: a dark emitter
turns visible at rate k_on, a visible emitter returns to the dark
state at rate k_off or bleaches at rate k_bleach, and each frame a
visible emitter is missed by the localization step with probability
p_miss. Starting from all emitters dark, the visible and dark
populations decay as sums of two exponentials with composite rates
lambda1 (slow) and lambda2 (fast).

Reference:
Schodt & Lidke. "Spatiotemporal clustering of repeated
super-resolution localizations via linear assignment problem."
Front. Bioinform. 1, 724325 (2021).

'''
import numpy as np
from scipy.optimize import minimize
from scipy.spatial import cKDTree

from .clusters import compute_cluster_info

# Floor on fitted rates (1/frame)
MIN_RATE = 1e-5

# Nearest-neighbor distance (um) used when a cluster center has no
# distinct neighbor
FALLBACK_NN_DIST = 1.0

def composite_rates(k_on, k_off, k_bleach):
	'''
	INPUT
		k_on, k_off, k_bleach	:	float, rates in 1/frame

	RETURNS
		float, float, float :
			duty cycle k_on / (k_on + k_off + k_bleach);
			lambda1, the slow decay rate of the visible population;
			lambda2, the fast rise rate of the visible population

	'''
	k_total = k_on + k_off + k_bleach
	duty_cycle = k_on / k_total
	lambda1 = k_bleach * duty_cycle
	lambda2 = k_total - lambda1
	return duty_cycle, lambda1, lambda2

def _two_exp_integral(lambda1, lambda2, t):
	return (1.0 / lambda1) * (1.0 - np.exp(-lambda1 * t)) - \
		(1.0 / lambda2) * (1.0 - np.exp(-lambda2 * t))

def state_densities(k_on, k_off, k_bleach, n_frames):
	'''
	Densities of visible and dark emitters in each frame for a unit
	initial density of dark emitters at frame 1.

	INPUT
		k_on, k_off, k_bleach	:	float, rates in 1/frame
		n_frames				:	int

	RETURNS
		numpy.array, numpy.array :
			rho_on[f-1], density of visible emitters in frame f;
			rho_dark[f-1], density of dark (not bleached) emitters
				in frame f

	'''
	_, lambda1, lambda2 = composite_rates(k_on, k_off, k_bleach)
	t = np.arange(max(int(n_frames), 1), dtype = 'float64')
	slow = np.exp(-lambda1 * t)
	fast = np.exp(-lambda2 * t)
	rho_on = (k_on / (lambda2 - lambda1)) * (slow - fast)
	rho_dark = ((k_off + k_bleach - lambda1) * slow + \
		(k_on - lambda1) * fast) / (lambda2 - lambda1)
	return rho_on, rho_dark

def cumulative_loc_model(
	frames,
	n_emitters,
	k_on,
	k_off_plus_bleach,
	k_bleach,
	p_miss
):
	'''
	Expected cumulative number of localizations up to each frame in
	*frames*.

	'''
	k_total = k_on + k_off_plus_bleach
	lambda1 = k_on * k_bleach / k_total
	lambda2 = k_total - lambda1
	return np.ceil(n_emitters) * (1.0 - p_miss) * (k_on / k_total) * \
		_two_exp_integral(lambda1, lambda2, frames - 1.0)

def estimate_params(locs, clusters):
	'''
	Estimate the rate parameters from the preclusters in *clusters*,
	assuming each precluster is, on average, one blinking event of
	one emitter.

	k_off + k_bleach and p_miss follow in closed form from the
	precluster durations and observation counts; k_off is the rate at
	which new clusters appear per localization. The number of emitters
	and k_on are then fit to the cumulative number of localizations
	over time with a bounded Nelder-Mead search.

	INPUT
		locs		:	pandas.DataFrame, preclustered localization table
		clusters	:	list of pandas.DataFrame, from organize_clusters()

	RETURNS
		(float, float, float, float, float) :
			k_on, k_off, k_bleach (1/frame), p_miss, n_emitters

	'''
	n_clusters = len(clusters)
	durations, n_observations = compute_cluster_info(clusters)

	with np.errstate(divide = 'ignore', invalid = 'ignore'):
		k_off_plus_bleach = -np.log(1.0 - 1.0 / durations.mean())
	if not np.isfinite(k_off_plus_bleach) or k_off_plus_bleach <= 0:
		k_off_plus_bleach = 1.0
	p_miss = 1.0 - (n_observations / durations).mean()
	p_miss = min(max(p_miss, 0.0), 1.0 - 1e-9)

	frames, n_locs_per_frame = np.unique(locs['frame'].values, return_counts = True)
	frames = frames.astype('float64')
	n_locs_cumulative = np.cumsum(n_locs_per_frame).astype('float64')
	k_off = n_clusters / n_locs_cumulative[-1]
	k_bleach = max(MIN_RATE, k_off_plus_bleach - k_off)

	lower = np.array([n_locs_per_frame.max(), MIN_RATE], dtype = 'float64')
	upper = np.array([n_clusters, n_locs_cumulative[-1] / frames[-1]], dtype = 'float64')
	upper = np.maximum(upper, lower)

	n_guess = np.ceil(n_clusters * k_bleach / (k_off * (1.0 - p_miss)))
	guess = np.clip([n_guess, 1.0 / frames[-1]], lower, upper)

	def cost_function(u):
		x = lower + np.clip(u, 0.0, 1.0) * (upper - lower)
		model = cumulative_loc_model(frames, x[0], x[1], k_off_plus_bleach,
			k_bleach, p_miss)
		return ((n_locs_cumulative - model) ** 2).mean()

	# Search on the unit box so that both parameters move on the same
	# scale; fixed parameters (lower == upper) stay put.
	span = upper - lower
	u_guess = np.where(span > 0, (guess - lower) / np.where(span > 0, span, 1.0), 0.0)
	result = minimize(
		cost_function,
		u_guess,
		method = 'Nelder-Mead',
		bounds = [(0.0, 1.0), (0.0, 1.0)],
		options = {'xatol' : 1e-6, 'fatol' : 1e-9, 'maxiter' : 2000}
	)
	u_hat = result.x if np.isfinite(result.fun) else u_guess
	x_hat = lower + np.clip(u_hat, 0.0, 1.0) * span
	n_emitters = float(x_hat[0])
	k_on = float(x_hat[1])

	return k_on, float(k_off), float(k_bleach), float(p_miss), n_emitters

def cluster_centers(clusters):
	'''
	Precision-weighted center of each cluster, treating the members of
	a cluster as repeated measurements of one position.

	INPUT
		clusters	:	list of pandas.DataFrame, from organize_clusters()

	RETURNS
		numpy.array of shape (n_clusters, 2)

	'''
	centers = np.zeros((len(clusters), 2))
	eps = np.finfo('float64').eps
	for cluster_idx, cluster in enumerate(clusters):
		sx2 = cluster['sigma_x'].values.astype('float64') ** 2
		sy2 = cluster['sigma_y'].values.astype('float64') ** 2
		sxy = cluster['sigma_xy'].values.astype('float64')
		x = cluster['x'].values.astype('float64')
		y = cluster['y'].values.astype('float64')
		det = np.maximum(sx2 * sy2 - sxy ** 2, eps)
		p11 = sy2 / det
		p22 = sx2 / det
		p12 = -sxy / det
		precision = np.array([[p11.sum(), p12.sum()], [p12.sum(), p22.sum()]])
		weighted = np.array([(p11 * x + p12 * y).sum(), (p12 * x + p22 * y).sum()])
		centers[cluster_idx] = np.linalg.solve(precision, weighted)
	return centers

def estimate_densities(
	locs,
	clusters,
	k_on,
	k_off,
	k_bleach,
	p_miss,
	n_frames = None,
	n_density_neighbors = 2
):
	'''
	Estimate the initial local density of emitters around each
	precluster.

	The density of preclusters is measured from the distance to the
	n_density_neighbors-th nearest precluster center, then converted
	to a density of emitters by dividing by the expected number of
	detected blinking events per emitter over the acquisition.

	INPUT
		locs				:	pandas.DataFrame, preclustered
								localization table
		clusters			:	list of pandas.DataFrame, from
								organize_clusters()
		k_on, k_off, k_bleach	:	float, rates in 1/frame
		p_miss				:	float
		n_frames			:	int, number of frames in the
								acquisition; defaults to the largest
								frame in *locs*
		n_density_neighbors	:	int, number of nearest preclusters
								used for the local density

	RETURNS
		numpy.array, emitters/um^2 for each precluster

	'''
	n_clusters = len(clusters)
	if n_clusters == 0:
		return np.zeros(0)
	if n_frames is None:
		n_frames = int(locs['frame'].max())
	duty_cycle, lambda1, lambda2 = composite_rates(k_on, k_off, k_bleach)

	if n_clusters == 1:
		cluster = clusters[0]
		area = (cluster['x'].max() - cluster['x'].min()) * \
			(cluster['y'].max() - cluster['y'].min())
		if len(cluster) == 1 or area <= 0:
			return np.array([1.0])
		with np.errstate(divide = 'ignore', invalid = 'ignore'):
			density = (1.0 / area) * ((k_bleach / k_off) / (1.0 - p_miss)) / \
				(1.0 - np.exp(-k_bleach * duty_cycle * (n_frames - 1)))
		if not np.isfinite(density) or density <= 0:
			density = 1.0 / area
		return np.array([density])

	centers = cluster_centers(clusters)
	k = max(1, min(n_density_neighbors, n_clusters - 1))
	tree = cKDTree(centers)
	nn_dist, _ = tree.query(centers, k = k + 1)
	nn_dist = nn_dist.reshape((n_clusters, k + 1))

	kth_dist = np.zeros(n_clusters)
	for cluster_idx in range(n_clusters):
		others = np.sort(nn_dist[cluster_idx][np.isfinite(nn_dist[cluster_idx]) & \
			(nn_dist[cluster_idx] > 0)])
		if others.shape[0] >= k:
			kth_dist[cluster_idx] = others[k - 1]
		elif others.shape[0] > 0:
			kth_dist[cluster_idx] = others[-1]
		else:
			kth_dist[cluster_idx] = FALLBACK_NN_DIST
	cluster_density = (k + 1) / (np.pi * kth_dist ** 2)

	events_per_emitter = duty_cycle * k_off * (1.0 - p_miss) * \
		_two_exp_integral(lambda1, lambda2, n_frames - 1.0)
	if not np.isfinite(events_per_emitter) or events_per_emitter <= 0:
		events_per_emitter = 1.0
	return cluster_density / events_per_emitter
