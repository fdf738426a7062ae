from .errors import BioAnimError, ConfigurationError, PredictorStateError
from .frame import CoordinateFrame
from .gait import GaitVector, GAIT_NAMES, NUM_GAITS
from .environment import IntentSource, ScriptedIntent, StickIntent
from .environment import ObstacleQuery, NoObstacles, CylinderObstacles, WallObstacles
from .environment import TerrainQuery, FlatTerrain, HeightFunctionTerrain
from .trajectory import Trajectory, TrajectoryPoint
from .datalens import InputLens, OutputLens
from .pfnn import PFNN, PhaseLinear
from .predictor import MotionPredictor, PFNNParameters
from .predictor import load_checkpoint, load_holden_bins, load_parameters, save_parameters
from .skeleton import Joint, Skeleton
from .controller import BioAnimation, ControllerSettings
