'''
frameconnect -- connect repeated localizations of blinking emitters
in single molecule localization microscopy data.

	from frameconnect import frame_connect
	combined, info = frame_connect(locs, max_frame_gap = 5)

'''
from .locs import (
	LOC_COLUMNS,
	Localization,
	LocalizationError,
	as_loc_table,
	to_localizations,
	with_track_ids,
	validate_locs,
	read_locs,
	save_locs,
	save_locs_as_mat,
)
from .precluster import precluster, compress_track_ids
from .clusters import organize_clusters, compute_cluster_info
from .estimate import (
	estimate_params,
	estimate_densities,
	state_densities,
	composite_rates,
)
from .costmatrix import create_cost_matrix
from .link import solve_lap, link_clusters, connect_localizations
from .combine import combine_localizations
from .ideal import define_ideal_fc
from .connect import frame_connect, FrameConnectConfig, ConnectInfo

__version__ = '0.1.0'
