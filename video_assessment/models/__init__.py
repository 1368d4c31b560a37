from .video_assessment import VideoAssessment, AssessmentStatus
from .dimension_score import DimensionScore
from .summary import VideoAssessmentSummary
from .assessment_log import VideoAssessmentLog, LogEventType
from .api_call import VideoAssessmentApiCall
