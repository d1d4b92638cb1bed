"""
Soda-type classifier for free-text search queries.

Uses TF-IDF + LinearSVC to map a query such as "spicy homemade ginger
brew" onto one of the catalog soda types (cola, citrus, fruit, cream,
root-beer, ginger-ale, energy-drink).

Trained from SODA_TYPE_KEYWORDS in config.py, so no labelled query log
is needed. Character n-grams make it tolerant of the typos users type
into a search box ("gingr", "sasparilla").
"""

import logging
import pickle
import random
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np
from sklearn.calibration import CalibratedClassifierCV
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.pipeline import Pipeline
from sklearn.svm import LinearSVC

from config import MODEL_PATHS, SODA_TYPE_KEYWORDS

logger = logging.getLogger(__name__)


class QueryClassifier:
    """
    Lightweight soda-type classifier.

    Training strategy (weak supervision):
        Every keyword in SODA_TYPE_KEYWORDS becomes a training document
        labelled with its soda type. Random pairs and triples of keywords
        plus recipe-search phrasings ("homemade ... recipe") give the
        model realistic multi-word inputs.

    Architecture:
        TF-IDF (char_wb 2-5 grams) -> CalibratedClassifierCV(LinearSVC)

    Usage:
        clf = QueryClassifier()
        clf.train()
        soda_type, conf = clf.predict("sugar free cola syrup")
    """

    def __init__(self, model_path: Optional[Path] = None):
        self.model_path = Path(model_path or MODEL_PATHS["query_classifier"])
        self._pipeline: Optional[Pipeline] = None
        self._labels: List[str] = []
        self._is_trained = False

    @property
    def is_trained(self) -> bool:
        return self._is_trained

    @property
    def labels(self) -> List[str]:
        return list(self._labels)

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train(self, keywords_map: Optional[Dict[str, List[str]]] = None) -> None:
        """
        Train the classifier from a soda-type -> keywords mapping.

        Args:
            keywords_map: ``{soda_type: [keyword, ...]}``; defaults to
                ``SODA_TYPE_KEYWORDS`` from config.
        """
        keywords_map = keywords_map or SODA_TYPE_KEYWORDS
        texts, labels = self._build_training_data(keywords_map)

        logger.info(
            "Training query classifier on %d examples across %d soda types",
            len(texts),
            len(set(labels)),
        )

        tfidf = TfidfVectorizer(
            analyzer="char_wb",
            ngram_range=(2, 5),
            max_features=8000,
            sublinear_tf=True,
        )
        svc = LinearSVC(C=1.0, max_iter=5000, class_weight="balanced")
        calibrated = CalibratedClassifierCV(svc, cv=3, method="sigmoid")

        self._pipeline = Pipeline([
            ("tfidf", tfidf),
            ("clf", calibrated),
        ])
        self._pipeline.fit(texts, labels)
        self._labels = sorted(set(labels))
        self._is_trained = True

        logger.info("Query classifier trained successfully")

    def _build_training_data(
        self, keywords_map: Dict[str, List[str]]
    ) -> Tuple[List[str], List[str]]:
        """
        Generate synthetic search queries from keyword lists.

        For each soda type we produce single keywords, keyword pairs,
        keyword triples and keywords wrapped in search phrasings
        ("how to make ... at home").
        """
        rng = random.Random(42)

        texts: List[str] = []
        labels: List[str] = []

        query_prefixes = [
            "", "homemade", "diy", "craft", "easy", "best", "natural",
            "sugar free", "how to make", "recipe for", "syrup",
        ]
        query_suffixes = [
            "", "recipe", "syrup", "soda", "drink", "at home", "concentrate",
        ]

        for soda_type, keywords in keywords_map.items():
            for kw in keywords:
                texts.append(kw)
                labels.append(soda_type)

            for _ in range(min(len(keywords) * 3, 200)):
                pair = rng.sample(keywords, min(2, len(keywords)))
                texts.append(" ".join(pair))
                labels.append(soda_type)

            for _ in range(min(len(keywords) * 2, 150)):
                triple = rng.sample(keywords, min(3, len(keywords)))
                texts.append(" ".join(triple))
                labels.append(soda_type)

            for kw in keywords:
                prefix = rng.choice(query_prefixes)
                suffix = rng.choice(query_suffixes)
                texts.append(f"{prefix} {kw} {suffix}".strip())
                labels.append(soda_type)

        logger.debug("Built %d training examples", len(texts))
        return texts, labels

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def predict(self, text: str) -> Tuple[Optional[str], float]:
        """
        Predict the soda type for a query.

        Returns:
            ``(soda_type, confidence)``; ``(None, 0.0)`` for blank input
        """
        if not self._is_trained:
            self._ensure_loaded()

        if not self._is_trained:
            raise RuntimeError("Classifier not trained; call train() or load()")

        text = str(text or "").lower().strip()
        if not text:
            return None, 0.0

        probs = self._pipeline.predict_proba([text])[0]
        idx = int(np.argmax(probs))
        return str(self._pipeline.classes_[idx]), float(probs[idx])

    def rank(self, text: str, top_n: int = 3) -> List[Tuple[str, float]]:
        """Top ``top_n`` soda types with their probabilities."""
        if not self._is_trained:
            self._ensure_loaded()
        if not self._is_trained or not str(text or "").strip():
            return []

        probs = self._pipeline.predict_proba([str(text).lower()])[0]
        order = np.argsort(probs)[::-1][:top_n]
        return [(str(self._pipeline.classes_[i]), float(probs[i])) for i in order]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, path: Optional[Path] = None) -> None:
        path = Path(path or self.model_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "wb") as f:
            pickle.dump({"pipeline": self._pipeline, "labels": self._labels}, f)

        size_kb = path.stat().st_size / 1024
        logger.info("Query classifier saved to %s (%.1f KB)", path, size_kb)

    def load(self, path: Optional[Path] = None) -> bool:
        """Load a trained model from disk. Returns True on success."""
        path = Path(path or self.model_path)

        if not path.exists():
            logger.warning("Query classifier model not found at %s", path)
            return False

        try:
            with open(path, "rb") as f:
                data = pickle.load(f)
            self._pipeline = data["pipeline"]
            self._labels = data["labels"]
            self._is_trained = True
            logger.info("Query classifier loaded from %s", path)
            return True
        except (OSError, pickle.UnpicklingError, KeyError, EOFError) as e:
            logger.error("Failed to load query classifier: %s", e)
            return False

    def _ensure_loaded(self) -> None:
        if not self._is_trained and self.model_path.exists():
            self.load()


def load_or_train(path: Optional[Path] = None, save: bool = True) -> QueryClassifier:
    """
    Build a ready-to-use classifier.

    1. Try to load from ``path`` (default ``model/query_classifier.pkl``)
    2. If not found, train from ``SODA_TYPE_KEYWORDS`` and optionally save
    """
    classifier = QueryClassifier(path)
    if not classifier.load():
        logger.info("No saved query classifier found; training fresh")
        classifier.train()
        if save:
            try:
                classifier.save()
            except OSError as e:
                logger.warning("Could not persist query classifier: %s", e)
    return classifier
